"""
API Routes Package

This module consolidates all API routes for the PayPal checkout service.
"""

from fastapi import APIRouter

from . import orders
from . import payments
from . import tokens

# Create main router
router = APIRouter(prefix="/paypal")

# Include all route modules
router.include_router(orders.router, prefix="/orders", tags=["orders"])
router.include_router(payments.router, tags=["payments"])
router.include_router(tokens.router, tags=["tokens"])

# Export for use in main application
__all__ = ["router"]
