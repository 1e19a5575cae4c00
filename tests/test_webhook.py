"""Tests for webhook verification, payload probing and status transitions."""

import json

import pytest

from conftest import WEBHOOK_SECRET, sign
from genquota.errors import AuthenticationError, ValidationError
from genquota.models import BillingStatus
from genquota.services.usage import UsageService
from genquota.services.webhook import (
    ACTIVATION_EVENTS,
    DEACTIVATION_EVENTS,
    BillingWebhookProcessor,
    extract_provider_ids,
    extract_user_id,
    status_for_event,
    verify_signature,
)


def event(name: str | None, user_id: str | None = "u1", **data) -> dict:
    payload: dict = {"meta": {}, "data": {"type": "subscriptions", "id": "sub_1", "attributes": {}}}
    if name is not None:
        payload["meta"]["event_name"] = name
    if user_id is not None:
        payload["meta"]["custom_data"] = {"user_id": user_id}
    payload["data"].update(data)
    return payload


def body_of(payload) -> bytes:
    return json.dumps(payload).encode()


@pytest.fixture
def usage(local_store) -> UsageService:
    return UsageService(local_store, free_limit=1)


@pytest.fixture
def processor(usage) -> BillingWebhookProcessor:
    return BillingWebhookProcessor(usage, WEBHOOK_SECRET)


# ============ Signature ============


def test_signature_skipped_without_secret():
    assert verify_signature(b"{}", None, None) is True
    assert verify_signature(b"{}", "anything", None) is True


def test_signature_matches_hmac_of_raw_body():
    body = b'{"meta": {"event_name": "order_created"}}'
    assert verify_signature(body, sign(body), WEBHOOK_SECRET) is True
    assert verify_signature(body, f"  {sign(body)}\n", WEBHOOK_SECRET) is True


def test_signature_rejects_mismatch():
    body = b'{"a": 1}'
    assert verify_signature(body, None, WEBHOOK_SECRET) is False
    assert verify_signature(body, "", WEBHOOK_SECRET) is False
    assert verify_signature(body, "deadbeef", WEBHOOK_SECRET) is False
    assert verify_signature(body, sign(body, "other-secret"), WEBHOOK_SECRET) is False
    # Re-serialized JSON is not the signed byte sequence.
    assert verify_signature(b'{"a":1}', sign(body), WEBHOOK_SECRET) is False


# ============ Payload probing ============


def test_user_id_priority_order():
    payload = {
        "meta": {"custom_data": {"user_id": "from-meta"}},
        "data": {
            "attributes": {
                "custom_data": {"user_id": "from-data-custom"},
                "user_id": "from-attributes",
            }
        },
    }
    assert extract_user_id(payload) == "from-meta"

    del payload["meta"]["custom_data"]
    assert extract_user_id(payload) == "from-data-custom"

    del payload["data"]["attributes"]["custom_data"]
    assert extract_user_id(payload) == "from-attributes"


def test_user_id_skips_non_strings_and_blanks():
    payload = {
        "meta": {"custom_data": {"user_id": 42}},
        "data": {"attributes": {"custom_data": {"user_id": "  "}, "user_id": "u7"}},
    }
    assert extract_user_id(payload) == "u7"
    assert extract_user_id({"meta": "not-an-object"}) is None


def test_event_mapping_sets_are_disjoint():
    assert not ACTIVATION_EVENTS & DEACTIVATION_EVENTS
    for name in ACTIVATION_EVENTS:
        assert status_for_event(name) == BillingStatus.ACTIVE
    for name in DEACTIVATION_EVENTS:
        assert status_for_event(name) == BillingStatus.FREE
    assert status_for_event("license_key_created") is None


def test_provider_ids():
    payload = {"data": {"type": "subscriptions", "id": 991, "attributes": {"customer_id": 77}}}
    assert extract_provider_ids(payload) == ("77", "991")

    order = {"data": {"type": "orders", "id": "5", "attributes": {"customer_id": "c1"}}}
    assert extract_provider_ids(order) == ("c1", None)


# ============ Processor ============


@pytest.mark.asyncio
async def test_subscription_created_activates(processor, usage):
    body = body_of(event("subscription_created", attributes={"customer_id": 12}))

    outcome = await processor.process(body, sign(body))

    assert outcome.ignored is False
    assert outcome.billing_status == BillingStatus.ACTIVE
    record = await usage.store.get("u1")
    assert record.billing_status == BillingStatus.ACTIVE
    assert record.provider_customer_id == "12"
    assert record.provider_subscription_id == "sub_1"


@pytest.mark.asyncio
async def test_replayed_event_is_idempotent(processor, usage):
    body = body_of(event("subscription_payment_success"))

    await processor.process(body, sign(body))
    once = await usage.store.get("u1")
    await processor.process(body, sign(body))
    twice = await usage.store.get("u1")

    assert once.billing_status == twice.billing_status == BillingStatus.ACTIVE
    assert once.generated_count == twice.generated_count == 0


@pytest.mark.asyncio
async def test_cancellation_deactivates(processor, usage):
    await usage.set_billing_status("u1", BillingStatus.ACTIVE)
    body = body_of(event("subscription_cancelled"))

    await processor.process(body, sign(body))

    assert (await usage.store.get("u1")).billing_status == BillingStatus.FREE


@pytest.mark.asyncio
async def test_deactivation_keeps_generation_count(processor, usage):
    await usage.record_generation("u1")
    body = body_of(event("subscription_expired"))

    await processor.process(body, sign(body))

    assert (await usage.store.get("u1")).generated_count == 1


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "payload",
    [
        event("subscription_created", user_id=None),
        event(None),
        event("license_key_created"),
    ],
)
async def test_incomplete_or_unknown_events_are_ignored(processor, local_store, payload):
    body = body_of(payload)

    outcome = await processor.process(body, sign(body))

    assert outcome.ignored is True
    assert not local_store.path.exists()


@pytest.mark.asyncio
async def test_bad_signature_raises_and_does_not_mutate(processor, local_store):
    body = body_of(event("subscription_created"))

    with pytest.raises(AuthenticationError):
        await processor.process(body, "0" * 64)

    assert not local_store.path.exists()


@pytest.mark.asyncio
@pytest.mark.parametrize("body", [b"not json", b"[1, 2]", b"\xff\xfe"])
async def test_malformed_body_raises_validation_error(processor, body):
    with pytest.raises(ValidationError):
        await processor.process(body, sign(body))


@pytest.mark.asyncio
async def test_permissive_mode_without_secret(usage):
    processor = BillingWebhookProcessor(usage, None)
    body = body_of(event("order_created"))

    outcome = await processor.process(body, None)

    assert outcome.billing_status == BillingStatus.ACTIVE
