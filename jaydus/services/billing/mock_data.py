"""
Synthetic Stripe objects returned in mock mode (no STRIPE_SECRET_KEY or MOCK_MODE=true).
"""

from typing import Any, Dict, Optional
from urllib.parse import quote
import time

MOCK_CUSTOMER_ID = "cus_mock123456789"
MOCK_SUBSCRIPTION_ID = "sub_mock123456789"
MOCK_USER_ID = "mock-user-123"

MOCK_WEBHOOK_EVENTS = (
    "checkout.session.completed",
    "customer.subscription.updated",
    "customer.subscription.deleted",
    "invoice.payment_failed",
)


def create_mock_checkout_session(
    price_id: str,
    customer_id: Optional[str] = None,
    metadata: Optional[Dict[str, str]] = None,
) -> Dict[str, Any]:
    session_id = f"cs_mock_{int(time.time() * 1000)}"
    return {
        "sessionId": session_id,
        "id": session_id,
        "object": "checkout.session",
        "customer": customer_id or MOCK_CUSTOMER_ID,
        "subscription": MOCK_SUBSCRIPTION_ID,
        "price": price_id,
        "url": f"https://mock-checkout.stripe.com/pay/{session_id}?test=true",
        "metadata": metadata or {"userId": MOCK_USER_ID},
    }


def create_mock_portal_session(customer_id: Optional[str], return_url: str) -> Dict[str, str]:
    customer_id = customer_id or MOCK_CUSTOMER_ID
    return {
        "url": f"https://mock-portal.stripe.com/customers/{customer_id}?return_url={quote(return_url, safe='')}"
    }


def mock_webhook_ack(event_type: Optional[str]) -> Dict[str, Any]:
    """Acknowledge a webhook without verifying or applying it."""
    if event_type not in MOCK_WEBHOOK_EVENTS:
        event_type = "checkout.session.completed"
    return {"received": True, "mock": True, "event": event_type}
