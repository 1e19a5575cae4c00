"""Billing endpoints: usage status, checkout creation and the Lemon Squeezy webhook.

Endpoints:
- GET  /api/billing/status          : quota view for a user
- POST /api/billing/create-checkout : hosted checkout URL for a user
- POST /api/billing/lemon/webhook   : subscription lifecycle events (HMAC-signed)
"""

from fastapi import APIRouter, Header, Query, Request, status
from fastapi.responses import JSONResponse

from genquota.dependencies import Checkout, Usage, WebhookProcessor
from genquota.errors import ValidationError
from genquota.models import CheckoutRequest, CheckoutResponse, UsageView, WebhookAck
from genquota.services.orchestrator import read_text, require_user_id

router = APIRouter(prefix="/billing", tags=["billing"])


@router.get(
    "/status",
    response_model=UsageView,
    summary="Usage and subscription status",
)
async def billing_status(
    usage: Usage,
    user_id: str | None = Query(default=None, alias="userId"),
) -> UsageView:
    """Return remaining free generations and subscription state for a user."""
    user_id = read_text(user_id)
    if not user_id:
        raise ValidationError("userId is required.")
    return await usage.get_view(user_id)


@router.post(
    "/create-checkout",
    response_model=CheckoutResponse,
    summary="Create a subscription checkout",
)
async def create_checkout(payload: CheckoutRequest, checkout: Checkout):
    """Create a hosted checkout tagged with the caller's user id."""
    user_id = require_user_id(payload.client_user_id)
    email = read_text(payload.email)
    result = await checkout.create_checkout(user_id, email=email or None)
    if not result.ok:
        content = {"message": result.message, "code": "billing_not_ready"}
        if result.status is not None:
            content["upstreamStatus"] = result.status
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content=content)

    return CheckoutResponse(checkout_url=result.checkout_url)


@router.post(
    "/lemon/webhook",
    response_model=WebhookAck,
    response_model_exclude_none=True,
    summary="Lemon Squeezy webhook receiver",
)
async def lemon_webhook(
    request: Request,
    processor: WebhookProcessor,
    x_signature: str | None = Header(None),
) -> WebhookAck:
    """
    Verify ``X-Signature`` over the raw body and apply the billing transition.

    The body is read unparsed so the HMAC covers the exact delivered bytes.
    """
    body = await request.body()
    outcome = await processor.process(body, x_signature)
    return WebhookAck(ok=True, ignored=True if outcome.ignored else None)
