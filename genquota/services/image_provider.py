"""Reve image API client."""

from __future__ import annotations

from typing import Any

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from genquota.config import Settings
from genquota.errors import ConfigurationError, UpstreamProviderError
from genquota.utils.logging import get_logger

logger = get_logger(__name__)

UPSCALE_FACTORS = (2, 3, 4)


def remove_background() -> dict[str, Any]:
    return {"process": "remove_background"}


def upscale(factor: int) -> dict[str, Any]:
    if factor not in UPSCALE_FACTORS:
        raise ValueError(f"Unsupported upscale factor: {factor}")
    return {"process": "upscale", "upscale_factor": factor}


class ReveImage(BaseModel):
    """Successful image response."""

    image: str
    version: str | None = None
    content_violation: bool = False
    request_id: str | None = None
    credits_used: float | None = None
    credits_remaining: float | None = None

    def to_client(self) -> dict[str, Any]:
        """Fields merged into the generation response."""
        return {
            "image_data_url": f"data:image/png;base64,{self.image}",
            "version": self.version,
            "request_id": self.request_id,
            "credits_used": self.credits_used,
            "credits_remaining": self.credits_remaining,
            "content_violation": self.content_violation,
        }


class ReveImageClient:
    """Calls ``/image/create`` and ``/image/edit``. No retries."""

    def __init__(
        self,
        api_key: str | None,
        base_url: str = "https://api.reve.com/v1",
        timeout: float = 120.0,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "ReveImageClient":
        api_key = settings.reve_api_key
        return cls(
            api_key=api_key.get_secret_value() if api_key else None,
            base_url=settings.reve_api_base_url,
            timeout=settings.reve_timeout_seconds,
        )

    async def create(self, prompt: str, postprocessing: list[dict[str, Any]]) -> ReveImage:
        return await self._call(
            "create",
            {
                "prompt": prompt,
                "version": "latest",
                "postprocessing": postprocessing,
                "test_time_scaling": 1,
            },
        )

    async def edit(
        self,
        edit_instruction: str,
        reference_image: str,
        postprocessing: list[dict[str, Any]],
    ) -> ReveImage:
        return await self._call(
            "edit",
            {
                "edit_instruction": edit_instruction,
                "reference_image": reference_image,
                "version": "latest",
                "postprocessing": postprocessing,
                "test_time_scaling": 1,
            },
        )

    async def _call(self, endpoint: str, body: dict[str, Any]) -> ReveImage:
        if not self._api_key:
            raise ConfigurationError("Image generation is unavailable: REVE_API_KEY is not set.")

        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Accept": "application/json",
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    f"{self._base_url}/image/{endpoint}", headers=headers, json=body
                )
        except httpx.HTTPError as e:
            logger.error("reve_unreachable", endpoint=endpoint, error=str(e))
            raise UpstreamProviderError("Reve API is unreachable.") from e

        try:
            data = response.json()
        except ValueError:
            data = None

        if response.is_error:
            message = "Reve API call failed"
            if isinstance(data, dict):
                message = data.get("message") or message
                if data.get("error_code"):
                    message = f"{message} ({data['error_code']})"
            logger.error("reve_call_failed", endpoint=endpoint, status=response.status_code, message=message)
            raise UpstreamProviderError(message, upstream_status=response.status_code)

        if not isinstance(data, dict) or not isinstance(data.get("image"), str):
            raise UpstreamProviderError("Reve API returned no image.", upstream_status=response.status_code)

        try:
            return ReveImage.model_validate(data)
        except SchemaError as e:
            raise UpstreamProviderError(
                "Reve API returned an unexpected response.", upstream_status=response.status_code
            ) from e
