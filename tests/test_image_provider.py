"""Tests for the Reve image API client."""

import json

import httpx
import pytest
import respx

from genquota.errors import ConfigurationError, UpstreamProviderError
from genquota.services.image_provider import ReveImageClient, remove_background, upscale

BASE_URL = "https://reve.test/v1"

IMAGE_RESPONSE = {
    "image": "aW1n",
    "version": "reve-image-1",
    "content_violation": False,
    "request_id": "rq_1",
    "credits_used": 2,
    "credits_remaining": 98,
}


def client(api_key: str | None = "reve-key") -> ReveImageClient:
    return ReveImageClient(api_key=api_key, base_url=BASE_URL)


def test_postprocessing_directives():
    assert remove_background() == {"process": "remove_background"}
    assert upscale(4) == {"process": "upscale", "upscale_factor": 4}
    with pytest.raises(ValueError):
        upscale(7)


@pytest.mark.asyncio
@respx.mock
async def test_create_sends_prompt_and_maps_response():
    route = respx.post(f"{BASE_URL}/image/create").mock(
        return_value=httpx.Response(200, json=IMAGE_RESPONSE)
    )

    image = await client().create("a lighthouse", [remove_background()])

    sent = json.loads(route.calls.last.request.content)
    assert sent == {
        "prompt": "a lighthouse",
        "version": "latest",
        "postprocessing": [{"process": "remove_background"}],
        "test_time_scaling": 1,
    }
    assert route.calls.last.request.headers["Authorization"] == "Bearer reve-key"

    mapped = image.to_client()
    assert mapped["image_data_url"] == "data:image/png;base64,aW1n"
    assert mapped["request_id"] == "rq_1"
    assert mapped["credits_remaining"] == 98


@pytest.mark.asyncio
@respx.mock
async def test_edit_sends_reference_image():
    route = respx.post(f"{BASE_URL}/image/edit").mock(
        return_value=httpx.Response(200, json=IMAGE_RESPONSE)
    )

    await client().edit("sharpen", "QUJD", [upscale(3)])

    sent = json.loads(route.calls.last.request.content)
    assert sent["edit_instruction"] == "sharpen"
    assert sent["reference_image"] == "QUJD"
    assert sent["postprocessing"] == [{"process": "upscale", "upscale_factor": 3}]


@pytest.mark.asyncio
@respx.mock
async def test_error_message_includes_error_code():
    respx.post(f"{BASE_URL}/image/create").mock(
        return_value=httpx.Response(
            400, json={"message": "Prompt rejected", "error_code": "CONTENT_POLICY"}
        )
    )

    with pytest.raises(UpstreamProviderError) as exc_info:
        await client().create("x", [remove_background()])

    assert exc_info.value.message == "Prompt rejected (CONTENT_POLICY)"
    assert exc_info.value.upstream_status == 400


@pytest.mark.asyncio
@respx.mock
async def test_error_without_json_body():
    respx.post(f"{BASE_URL}/image/create").mock(return_value=httpx.Response(502, content=b"bad gateway"))

    with pytest.raises(UpstreamProviderError) as exc_info:
        await client().create("x", [remove_background()])

    assert exc_info.value.message == "Reve API call failed"


@pytest.mark.asyncio
@respx.mock
async def test_transport_error_is_upstream_error():
    respx.post(f"{BASE_URL}/image/create").mock(side_effect=httpx.ConnectError("refused"))

    with pytest.raises(UpstreamProviderError):
        await client().create("x", [remove_background()])


@pytest.mark.asyncio
async def test_missing_api_key_is_configuration_error():
    with pytest.raises(ConfigurationError):
        await client(api_key=None).create("x", [remove_background()])
