"""Lemon Squeezy hosted checkout creation."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any

import httpx

from genquota.config import Settings
from genquota.utils.logging import get_logger

logger = get_logger(__name__)


class CheckoutFailure(str, Enum):
    """Why no checkout URL could be produced."""

    NOT_CONFIGURED = "not_configured"
    UPSTREAM_REJECTED = "upstream_rejected"
    EMPTY_URL = "empty_url"
    UNREACHABLE = "unreachable"


@dataclass(frozen=True)
class CheckoutResult:
    """Either a checkout URL or a failure with a human-readable message."""

    checkout_url: str | None = None
    failure: CheckoutFailure | None = None
    message: str | None = None
    status: int | None = None

    @property
    def ok(self) -> bool:
        return self.checkout_url is not None

    @classmethod
    def failed(
        cls, failure: CheckoutFailure, message: str, status: int | None = None
    ) -> "CheckoutResult":
        return cls(failure=failure, message=message, status=status)


class LemonCheckoutGateway:
    """Creates checkouts tagged with the caller's user id.

    The user id travels in ``checkout_data.custom`` and comes back in the
    webhook's ``meta.custom_data``. ``create_checkout`` never raises.
    """

    def __init__(
        self,
        api_key: str | None,
        store_id: str | None,
        variant_id: str | None,
        api_url: str = "https://api.lemonsqueezy.com/v1",
        redirect_url: str = "https://www.canva.com",
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._store_id = store_id
        self._variant_id = variant_id
        self._api_url = api_url.rstrip("/")
        self._redirect_url = redirect_url
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "LemonCheckoutGateway":
        api_key = settings.lemon_squeezy_api_key
        return cls(
            api_key=api_key.get_secret_value() if api_key else None,
            store_id=settings.lemon_squeezy_store_id,
            variant_id=settings.lemon_squeezy_variant_id,
            api_url=settings.lemon_squeezy_api_url,
            redirect_url=settings.checkout_redirect_url,
            timeout=settings.http_timeout_seconds,
        )

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._store_id and self._variant_id)

    def _build_payload(self, user_id: str, email: str | None) -> dict[str, Any]:
        checkout_data: dict[str, Any] = {"custom": {"user_id": user_id}}
        if email:
            checkout_data["email"] = email

        return {
            "data": {
                "type": "checkouts",
                "attributes": {
                    "checkout_data": checkout_data,
                    "product_options": {"redirect_url": self._redirect_url},
                },
                "relationships": {
                    "store": {"data": {"type": "stores", "id": self._store_id}},
                    "variant": {"data": {"type": "variants", "id": self._variant_id}},
                },
            }
        }

    async def create_checkout(self, user_id: str, email: str | None = None) -> CheckoutResult:
        if not self.configured:
            return CheckoutResult.failed(
                CheckoutFailure.NOT_CONFIGURED,
                "Missing Lemon configuration. Set LEMON_SQUEEZY_API_KEY, "
                "LEMON_SQUEEZY_STORE_ID, and LEMON_SQUEEZY_VARIANT_ID.",
            )

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/vnd.api+json",
            "Content-Type": "application/vnd.api+json",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._api_url}/checkouts",
                    headers=headers,
                    json=self._build_payload(user_id, email),
                )
        except httpx.HTTPError as e:
            logger.error("checkout_unreachable", user_id=user_id, error=str(e))
            return CheckoutResult.failed(
                CheckoutFailure.UNREACHABLE,
                "Lemon checkout service is unreachable. Try again later.",
            )

        if response.is_error:
            logger.error(
                "checkout_rejected",
                user_id=user_id,
                status=response.status_code,
                body=response.text[:500],
            )
            return CheckoutResult.failed(
                CheckoutFailure.UPSTREAM_REJECTED,
                "Lemon checkout creation failed. Verify API key permissions "
                "and that store/variant IDs are correct.",
                status=response.status_code,
            )

        try:
            url = response.json()["data"]["attributes"]["url"]
        except (ValueError, KeyError, TypeError):
            url = None

        if not isinstance(url, str) or not url:
            return CheckoutResult.failed(
                CheckoutFailure.EMPTY_URL,
                "Lemon checkout URL was empty. Check your product variant configuration.",
            )

        return CheckoutResult(checkout_url=url)
