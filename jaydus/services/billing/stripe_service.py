"""
Stripe billing: checkout sessions, customer portal and webhook processing.

The stripe SDK is synchronous, so calls run in a worker thread.
"""

from typing import Any, Dict, Optional
import asyncio
import json
import stripe
from fastapi import Depends
import structlog

from jaydus.core.config import settings
from jaydus.core.exceptions import ConfigurationError, InvalidRequestError, NotFoundError
from jaydus.models.records import SubscriptionStatus, SubscriptionTier, User
from jaydus.repositories import IDataStore, get_data_store
from jaydus.services.billing import mock_data

logger = structlog.get_logger(__name__)

PRICE_TIERS = {
    "price_real_monthly_basic": SubscriptionTier.PRO,
    "price_real_monthly_premium": SubscriptionTier.BUSINESS,
    "price_real_monthly_enterprise": SubscriptionTier.ENTERPRISE,
}


def tier_for_price(price_id: Optional[str]) -> SubscriptionTier:
    return PRICE_TIERS.get(price_id, SubscriptionTier.FREE)


def _field(obj: Any, *path: str) -> Any:
    """Nested lookup on Stripe objects or plain dicts; None when any key is missing."""
    for key in path:
        if obj is None:
            return None
        try:
            obj = obj[key]
        except (KeyError, IndexError, TypeError):
            return None
    return obj


class StripeService:
    """Business logic for Stripe subscriptions."""

    def __init__(self, store: IDataStore):
        self.store = store

    @property
    def mock_mode(self) -> bool:
        return settings.stripe_mock_mode

    def _api_key(self) -> str:
        if not settings.stripe_secret_key:
            raise ConfigurationError("STRIPE_SECRET_KEY environment variable not set")
        return settings.stripe_secret_key

    @staticmethod
    def _own_customer(user: User, customer_id: Optional[str]) -> Optional[str]:
        """The caller may only act on the Stripe customer linked to their account."""
        if customer_id and customer_id != user.stripe_customer_id:
            logger.warning("Foreign Stripe customer requested", user_id=user.id, customer_id=customer_id)
            raise NotFoundError("Customer not found")
        return user.stripe_customer_id

    async def create_checkout_session(
        self,
        user: User,
        price_id: str,
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Start a subscription checkout for one price."""
        metadata = {"userId": user.id}
        customer_id = self._own_customer(user, customer_id)

        if self.mock_mode:
            logger.info("Creating mock checkout session", user_id=user.id, price_id=price_id)
            session = mock_data.create_mock_checkout_session(price_id, customer_id, metadata)
            return {"sessionId": session["id"], "url": session["url"]}

        params: Dict[str, Any] = {
            "mode": "subscription",
            "payment_method_types": ["card"],
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": metadata,
        }
        if customer_id:
            params["customer"] = customer_id
        else:
            params["customer_creation"] = "always"

        session = await asyncio.to_thread(stripe.checkout.Session.create, api_key=self._api_key(), **params)
        logger.info("Checkout session created", user_id=user.id, session_id=session["id"])
        return {"sessionId": session["id"], "url": session["url"]}

    async def create_customer_portal(
        self,
        user: User,
        customer_id: Optional[str] = None,
        return_url: Optional[str] = None,
    ) -> Dict[str, str]:
        """Open a billing portal session for the user's Stripe customer."""
        customer_id = self._own_customer(user, customer_id)
        return_url = return_url or settings.stripe_portal_return_url

        if self.mock_mode:
            return mock_data.create_mock_portal_session(customer_id, return_url)

        if not customer_id:
            raise InvalidRequestError("Customer ID is required")

        session = await asyncio.to_thread(
            stripe.billing_portal.Session.create,
            api_key=self._api_key(),
            customer=customer_id,
            return_url=return_url,
        )
        return {"url": session["url"]}

    async def handle_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify and apply a Stripe webhook event."""
        if self.mock_mode:
            try:
                event_type = json.loads(payload or b"{}").get("type")
            except (json.JSONDecodeError, AttributeError):
                event_type = None
            logger.info("Mock webhook processed", event_type=event_type)
            return mock_data.mock_webhook_ack(event_type)

        if not signature:
            raise InvalidRequestError("No signature provided")
        if not settings.stripe_webhook_secret:
            raise ConfigurationError("STRIPE_WEBHOOK_SECRET environment variable not set")

        try:
            event = stripe.Webhook.construct_event(payload, signature, settings.stripe_webhook_secret)
        except (stripe.SignatureVerificationError, ValueError) as e:
            logger.warning("Webhook signature verification failed", error=str(e))
            raise InvalidRequestError(f"Webhook signature verification failed: {e}")

        await self.apply_event(event)
        return {"received": True}

    async def apply_event(self, event: Any) -> None:
        """Update the user's subscription state from a verified event."""
        event_type = _field(event, "type")
        obj = _field(event, "data", "object")
        logger.info("Processing Stripe event", event_type=event_type, event_id=_field(event, "id"))

        if event_type == "checkout.session.completed":
            await self._checkout_completed(obj)
        elif event_type == "customer.subscription.updated":
            status = _field(obj, "status")
            if status not in {s.value for s in SubscriptionStatus}:
                logger.warning("Ignoring untracked subscription status", status=status)
                return
            await self._update_by_customer(
                _field(obj, "customer"),
                {"subscription_status": SubscriptionStatus(status)},
            )
        elif event_type == "customer.subscription.deleted":
            await self._update_by_customer(
                _field(obj, "customer"),
                {"subscription": SubscriptionTier.FREE, "subscription_status": SubscriptionStatus.CANCELED},
            )
        elif event_type == "invoice.payment_failed":
            await self._update_by_customer(
                _field(obj, "customer"),
                {"subscription_status": SubscriptionStatus.PAST_DUE},
            )
        else:
            logger.info("Ignoring unhandled Stripe event", event_type=event_type)

    async def _checkout_completed(self, session: Any) -> None:
        user_id = _field(session, "metadata", "userId")
        if not user_id:
            raise InvalidRequestError("No user ID provided in session metadata")

        subscription_id = _field(session, "subscription")
        price_id = None
        if subscription_id:
            subscription = await asyncio.to_thread(
                stripe.Subscription.retrieve, subscription_id, api_key=self._api_key()
            )
            price_id = _field(subscription, "items", "data", 0, "price", "id")

        tier = tier_for_price(price_id)
        updated = await self.store.update_user(user_id, {
            "subscription": tier,
            "subscription_status": SubscriptionStatus.ACTIVE,
            "stripe_customer_id": _field(session, "customer"),
            "stripe_subscription_id": subscription_id,
        })
        if updated is None:
            logger.warning("Checkout completed for unknown user", user_id=user_id)
            return
        logger.info("Subscription activated", user_id=user_id, tier=tier.value, price_id=price_id)

    async def _update_by_customer(self, customer_id: Optional[str], fields: Dict[str, Any]) -> None:
        user = await self.store.get_user_by_stripe_customer(customer_id) if customer_id else None
        if user is None:
            logger.warning("No user found for Stripe customer", customer_id=customer_id)
            return
        await self.store.update_user(user.id, fields)
        logger.info("Subscription updated", user_id=user.id, customer_id=customer_id,
                    fields={k: getattr(v, "value", v) for k, v in fields.items()})


def get_stripe_service(store: IDataStore = Depends(get_data_store)) -> StripeService:
    """Dependency injection for Stripe service."""
    return StripeService(store)
