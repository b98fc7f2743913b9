"""
Stripe billing endpoints.
"""

from typing import Any, Dict, Optional
from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, ConfigDict, Field

from jaydus.core.dependencies import get_current_user
from jaydus.core.exceptions import InvalidRequestError
from jaydus.models.records import User
from jaydus.services.billing.stripe_service import StripeService, get_stripe_service

router = APIRouter()


class CheckoutSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    price_id: Optional[str] = Field(default=None, alias="priceId")
    success_url: Optional[str] = Field(default=None, alias="successUrl")
    cancel_url: Optional[str] = Field(default=None, alias="cancelUrl")
    customer_id: Optional[str] = Field(default=None, alias="customerId")


class CustomerPortalRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    customer_id: Optional[str] = Field(default=None, alias="customerId")
    return_url: Optional[str] = Field(default=None, alias="returnUrl")


@router.post("/create-checkout-session")
async def create_checkout_session(
    request: CheckoutSessionRequest,
    current_user: User = Depends(get_current_user),
    service: StripeService = Depends(get_stripe_service),
) -> Dict[str, Any]:
    if not request.price_id or not request.success_url or not request.cancel_url:
        raise InvalidRequestError("Price ID, success URL and cancel URL are required")

    return await service.create_checkout_session(
        current_user,
        price_id=request.price_id,
        success_url=request.success_url,
        cancel_url=request.cancel_url,
        customer_id=request.customer_id,
    )


@router.post("/create-customer-portal")
async def create_customer_portal(
    request: CustomerPortalRequest,
    current_user: User = Depends(get_current_user),
    service: StripeService = Depends(get_stripe_service),
) -> Dict[str, str]:
    return await service.create_customer_portal(current_user, request.customer_id, request.return_url)


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(default=None, alias="Stripe-Signature"),
    service: StripeService = Depends(get_stripe_service),
) -> Dict[str, Any]:
    """Stripe calls this with the raw event body; signatures are checked against it."""
    payload = await request.body()
    return await service.handle_webhook(payload, stripe_signature)
