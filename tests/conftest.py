"""Pytest configuration and fixtures."""

import hashlib
import hmac
from collections.abc import Callable
from typing import Any

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from genquota.config import Settings
from genquota.errors import UpstreamProviderError
from genquota.main import create_app
from genquota.services import Services, build_services
from genquota.services.checkout import CheckoutFailure, CheckoutResult
from genquota.services.image_provider import ReveImage
from genquota.services.usage_store import LocalUsageStore

WEBHOOK_SECRET = "whsec_test_secret"


def sign(body: bytes, secret: str = WEBHOOK_SECRET) -> str:
    """Hex HMAC-SHA256 as sent in ``X-Signature``."""
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


class FakeImages:
    """Image provider double that records every call."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.calls: list[dict[str, Any]] = []

    def _result(self) -> ReveImage:
        if self.fail:
            raise UpstreamProviderError("Generation rejected (bad_request)", upstream_status=400)
        return ReveImage(
            image="aW1hZ2U=",
            version="reve-1",
            content_violation=False,
            request_id=f"req-{len(self.calls)}",
            credits_used=1,
            credits_remaining=41,
        )

    async def create(self, prompt: str, postprocessing: list[dict[str, Any]]) -> ReveImage:
        self.calls.append({"endpoint": "create", "prompt": prompt, "postprocessing": postprocessing})
        return self._result()

    async def edit(
        self,
        edit_instruction: str,
        reference_image: str,
        postprocessing: list[dict[str, Any]],
    ) -> ReveImage:
        self.calls.append(
            {
                "endpoint": "edit",
                "prompt": edit_instruction,
                "reference_image": reference_image,
                "postprocessing": postprocessing,
            }
        )
        return self._result()


class FakeCheckout:
    """Checkout double returning a fixed URL, or a not-configured failure."""

    def __init__(self, url: str | None = "https://shop.example.com/checkout/abc") -> None:
        self.url = url
        self.calls: list[tuple[str, str | None]] = []

    async def create_checkout(self, user_id: str, email: str | None = None) -> CheckoutResult:
        self.calls.append((user_id, email))
        if self.url:
            return CheckoutResult(checkout_url=self.url)
        return CheckoutResult.failed(CheckoutFailure.NOT_CONFIGURED, "Missing Lemon configuration.")


@pytest.fixture
def make_settings(tmp_path) -> Callable[..., Settings]:
    def factory(**overrides: Any) -> Settings:
        values: dict[str, Any] = {
            "usage_file_path": str(tmp_path / "data" / "usage.json"),
            "free_image_limit": 1,
            "database_url": None,
            "prometheus_enabled": False,
            "reve_api_key": "reve-test-key",
            "longcat_api_key": None,
            "lemon_squeezy_api_key": None,
            "lemon_squeezy_store_id": None,
            "lemon_squeezy_variant_id": None,
            "lemon_squeezy_webhook_secret": None,
            "sentry_dsn": None,
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)

    return factory


@pytest.fixture
def settings(make_settings) -> Settings:
    return make_settings()


@pytest.fixture
def local_store(settings) -> LocalUsageStore:
    return LocalUsageStore(settings.usage_file_path)


@pytest.fixture
def images() -> FakeImages:
    return FakeImages()


@pytest.fixture
def checkout() -> FakeCheckout:
    return FakeCheckout()


@pytest.fixture
def services(settings, images, checkout) -> Services:
    return build_services(settings, images=images, checkout=checkout)


@pytest.fixture
def app(settings, services) -> FastAPI:
    return create_app(settings=settings, services=services)


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)
