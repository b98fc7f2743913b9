"""
Stripe billing.
"""

from .stripe_service import StripeService, get_stripe_service

__all__ = [
    "StripeService",
    "get_stripe_service",
]
