"""Error taxonomy surfaced by the HTTP API.

Every error renders to a JSON body carrying a human-readable ``message`` and a
machine ``code``. Remote usage-store failures never surface here: the
fallback store absorbs them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from genquota.models import UsageView


class GenQuotaError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code: int = 500
    code: str = "internal_error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict[str, Any]:
        return {"message": self.message, "code": self.code}


class ValidationError(GenQuotaError):
    """A required request field is missing or malformed."""

    status_code = 400
    code = "validation_error"


class AuthenticationError(GenQuotaError):
    """Webhook signature did not verify."""

    status_code = 401
    code = "invalid_signature"


class QuotaExceededError(GenQuotaError):
    """Admission denied: free generations used up and no active subscription."""

    status_code = 402
    code = "upgrade_required"

    def __init__(
        self,
        message: str,
        usage: UsageView,
        checkout_url: str | None = None,
        billing_message: str | None = None,
    ) -> None:
        super().__init__(message)
        self.usage = usage
        self.checkout_url = checkout_url
        self.billing_message = billing_message

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.checkout_url:
            payload["checkoutUrl"] = self.checkout_url
        if self.billing_message:
            payload["billingMessage"] = self.billing_message
        payload["usage"] = self.usage.model_dump(by_alias=True, mode="json")
        return payload


class UpstreamProviderError(GenQuotaError):
    """The image-generation provider failed; usage is left untouched."""

    status_code = 500
    code = "upstream_error"

    def __init__(self, message: str, upstream_status: int | None = None) -> None:
        super().__init__(message)
        self.upstream_status = upstream_status

    def to_payload(self) -> dict[str, Any]:
        payload = super().to_payload()
        if self.upstream_status is not None:
            payload["upstreamStatus"] = self.upstream_status
        return payload


class ConfigurationError(GenQuotaError):
    """A feature is unavailable because its credentials are not configured."""

    status_code = 503
    code = "not_configured"
