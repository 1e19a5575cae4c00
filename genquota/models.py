"""Pydantic models for usage records, API requests and responses."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model exposing camelCase field names on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class BillingStatus(str, Enum):
    """Subscription state of a user."""

    FREE = "free"
    ACTIVE = "active"


# ============ Usage Models ============


def utc_now() -> datetime:
    return datetime.now(UTC)


class UsageRecord(CamelModel):
    """Persisted per-user usage counters and billing status."""

    user_id: str
    generated_count: int = Field(default=0, ge=0)
    billing_status: BillingStatus = BillingStatus.FREE
    provider_customer_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "providerCustomerId", "lemonCustomerId", "provider_customer_id"
        ),
        serialization_alias="providerCustomerId",
    )
    provider_subscription_id: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "providerSubscriptionId", "lemonSubscriptionId", "provider_subscription_id"
        ),
        serialization_alias="providerSubscriptionId",
    )
    updated_at: datetime = Field(default_factory=utc_now)

    @classmethod
    def default(cls, user_id: str) -> "UsageRecord":
        """Fresh record for a user seen for the first time."""
        return cls(user_id=user_id)


class UsageView(CamelModel):
    """Caller-facing quota decision derived from a UsageRecord."""

    user_id: str
    generated_count: int
    free_limit: int
    remaining_free: int
    billing_status: BillingStatus
    has_active_subscription: bool
    can_generate: bool


# ============ Request Models ============
#
# Payload fields accept any JSON value; non-strings read as missing.


class CheckoutRequest(CamelModel):
    """Checkout creation request."""

    client_user_id: Any = None
    email: Any = None


class CreateRemoveBgRequest(CamelModel):
    """Create an image from a prompt and strip its background."""

    client_user_id: Any = None
    prompt: Any = None


class EnhanceRequest(CamelModel):
    """Edit a reference image: remove its background or upscale it."""

    client_user_id: Any = None
    reference_image_base64: Any = None
    operation: Any = None
    prompt: Any = None
    upscale_factor: Any = None


# ============ Response Models ============


class CheckoutResponse(CamelModel):
    """Hosted checkout URL."""

    checkout_url: str


class GenerationResponse(CamelModel):
    """Generated image, prompt provenance and refreshed usage."""

    image_data_url: str
    version: str | None = None
    request_id: str | None = None
    credits_used: float | None = None
    credits_remaining: float | None = None
    content_violation: bool = False
    original_prompt: str
    optimized_prompt: str
    prompt_optimized: bool
    prompt_optimization_source: str
    usage: UsageView


class WebhookAck(BaseModel):
    """Webhook acknowledgement."""

    ok: bool = True
    ignored: bool | None = None


class HealthResponse(BaseModel):
    """Health check response."""

    ok: bool = True
