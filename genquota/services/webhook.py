"""Lemon Squeezy billing webhook: signature verification and status transitions."""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from typing import Any

from genquota.errors import AuthenticationError, ValidationError
from genquota.models import BillingStatus
from genquota.services.usage import UsageService
from genquota.utils.logging import get_logger

logger = get_logger(__name__)

ACTIVATION_EVENTS = frozenset(
    {
        "order_created",
        "subscription_created",
        "subscription_resumed",
        "subscription_unpaused",
        "subscription_payment_success",
    }
)

DEACTIVATION_EVENTS = frozenset(
    {
        "subscription_cancelled",
        "subscription_expired",
        "subscription_paused",
        "subscription_payment_failed",
    }
)

EVENT_NAME_PATH = ("meta", "event_name")

# Probed in order; the first non-empty string wins.
USER_ID_PATHS = (
    ("meta", "custom_data", "user_id"),
    ("data", "attributes", "custom_data", "user_id"),
    ("data", "attributes", "user_id"),
)


def verify_signature(raw_body: bytes, signature: str | None, secret: str | None) -> bool:
    """
    Check the hex HMAC-SHA256 of the exact request bytes.

    Without a configured secret every payload is trusted (local development).
    """
    if not secret:
        return True
    if not signature:
        return False

    computed = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(computed.encode(), signature.strip().encode())


def read_nested(payload: Any, path: tuple[str, ...]) -> Any:
    current = payload
    for part in path:
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def read_nested_string(payload: Any, path: tuple[str, ...]) -> str | None:
    value = read_nested(payload, path)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def extract_user_id(payload: dict[str, Any]) -> str | None:
    for path in USER_ID_PATHS:
        user_id = read_nested_string(payload, path)
        if user_id:
            return user_id
    return None


def status_for_event(event_name: str) -> BillingStatus | None:
    if event_name in ACTIVATION_EVENTS:
        return BillingStatus.ACTIVE
    if event_name in DEACTIVATION_EVENTS:
        return BillingStatus.FREE
    return None


def extract_provider_ids(payload: dict[str, Any]) -> tuple[str | None, str | None]:
    """Customer id from the resource attributes, subscription id for subscription resources."""
    customer = read_nested(payload, ("data", "attributes", "customer_id"))
    customer_id = str(customer) if isinstance(customer, (str, int)) and customer != "" else None

    subscription_id = None
    if read_nested(payload, ("data", "type")) == "subscriptions":
        resource_id = read_nested(payload, ("data", "id"))
        if isinstance(resource_id, (str, int)) and resource_id != "":
            subscription_id = str(resource_id)

    return customer_id, subscription_id


@dataclass(frozen=True)
class WebhookOutcome:
    """Result of processing one delivery."""

    ignored: bool
    event_name: str | None = None
    user_id: str | None = None
    billing_status: BillingStatus | None = None


class BillingWebhookProcessor:
    """
    Applies subscription lifecycle events to the usage store.

    Fail-closed on authentication, fail-open (ignored) on unrecognised
    content. Status is set rather than toggled, so redelivery is harmless.
    """

    def __init__(self, usage: UsageService, secret: str | None) -> None:
        self._usage = usage
        self._secret = secret

    async def process(self, raw_body: bytes, signature: str | None) -> WebhookOutcome:
        if not verify_signature(raw_body, signature, self._secret):
            logger.warning("webhook_rejected", reason="invalid signature")
            raise AuthenticationError("Invalid webhook signature.")

        try:
            payload = json.loads(raw_body.decode("utf-8"))
        except ValueError as e:
            raise ValidationError("Webhook payload is not valid JSON.") from e

        if not isinstance(payload, dict):
            raise ValidationError("Webhook payload format is invalid.")

        event_name = read_nested_string(payload, EVENT_NAME_PATH)
        user_id = extract_user_id(payload)
        if not event_name or not user_id:
            logger.info("webhook_ignored", reason="missing event name or user id", event_name=event_name)
            return WebhookOutcome(ignored=True, event_name=event_name, user_id=user_id)

        status = status_for_event(event_name)
        if status is None:
            logger.info("webhook_ignored", reason="unhandled event", event_name=event_name, user_id=user_id)
            return WebhookOutcome(ignored=True, event_name=event_name, user_id=user_id)

        customer_id, subscription_id = extract_provider_ids(payload)
        await self._usage.set_billing_status(
            user_id,
            status,
            customer_id=customer_id,
            subscription_id=subscription_id,
        )
        logger.info(
            "webhook_applied",
            event_name=event_name,
            user_id=user_id,
            billing_status=status.value,
        )
        return WebhookOutcome(
            ignored=False, event_name=event_name, user_id=user_id, billing_status=status
        )
