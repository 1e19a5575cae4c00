"""Generation workflow: admission, prompt optimization, generation, usage increment."""

from __future__ import annotations

from typing import Any

from genquota.errors import QuotaExceededError, ValidationError
from genquota.models import (
    CreateRemoveBgRequest,
    EnhanceRequest,
    GenerationResponse,
    UsageView,
)
from genquota.services.checkout import LemonCheckoutGateway
from genquota.services.image_provider import (
    ReveImage,
    ReveImageClient,
    remove_background,
    upscale,
)
from genquota.services.prompt_optimizer import PromptOptimization, PromptOptimizer
from genquota.services.usage import UsageService
from genquota.utils.logging import get_logger

logger = get_logger(__name__)

OPERATION_REMOVE_BACKGROUND = "remove_background"
OPERATION_UPSCALE = "upscale"

DEFAULT_ENHANCE_PROMPT = "Enhance this image quality while preserving natural details."


def sanitize_upscale_factor(value: Any) -> int:
    """Accept 2, 3 or 4; anything else becomes 2."""
    if isinstance(value, bool):
        return 2
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 2
    if numeric in (3, 4):
        return int(numeric)
    return 2


def normalize_operation(value: Any) -> str:
    if value == OPERATION_REMOVE_BACKGROUND:
        return OPERATION_REMOVE_BACKGROUND
    return OPERATION_UPSCALE


def normalize_base64(value: str) -> str:
    """Strip a ``data:<mime>;base64,`` prefix if present."""
    value = value.strip()
    comma = value.find(",")
    if value.startswith("data:") and comma >= 0:
        return value[comma + 1 :]
    return value


def read_text(value: Any) -> str:
    """Trimmed string value; anything that is not a string reads as empty."""
    return value.strip() if isinstance(value, str) else ""


def require_user_id(value: Any) -> str:
    user_id = read_text(value)
    if not user_id:
        raise ValidationError("clientUserId is required.")
    return user_id


class GenerationOrchestrator:
    """
    Single entry point for ``create-remove-bg`` and ``enhance`` requests.

    Admission is decided before any paid upstream call; usage is incremented
    only after the image provider succeeds.
    """

    def __init__(
        self,
        usage: UsageService,
        checkout: LemonCheckoutGateway,
        optimizer: PromptOptimizer,
        images: ReveImageClient,
    ) -> None:
        self.usage = usage
        self.checkout = checkout
        self.optimizer = optimizer
        self.images = images

    async def create_remove_bg(self, request: CreateRemoveBgRequest) -> GenerationResponse:
        user_id = require_user_id(request.client_user_id)
        await self.admit(user_id)

        prompt = read_text(request.prompt)
        if not prompt:
            raise ValidationError("Prompt is required.")

        optimization = await self.optimizer.optimize(
            prompt, workflow="create", operation=OPERATION_REMOVE_BACKGROUND
        )
        image = await self.images.create(optimization.prompt, [remove_background()])
        return await self._complete(user_id, prompt, optimization, image)

    async def enhance(self, request: EnhanceRequest) -> GenerationResponse:
        user_id = require_user_id(request.client_user_id)
        await self.admit(user_id)

        reference_image = read_text(request.reference_image_base64)
        if not reference_image:
            raise ValidationError("referenceImageBase64 is required.")

        operation = normalize_operation(request.operation)
        if operation == OPERATION_REMOVE_BACKGROUND:
            postprocessing = [remove_background()]
        else:
            postprocessing = [upscale(sanitize_upscale_factor(request.upscale_factor))]

        prompt = read_text(request.prompt) or DEFAULT_ENHANCE_PROMPT

        optimization = await self.optimizer.optimize(prompt, workflow="enhance", operation=operation)
        image = await self.images.edit(
            optimization.prompt, normalize_base64(reference_image), postprocessing
        )
        return await self._complete(user_id, prompt, optimization, image)

    async def admit(self, user_id: str) -> UsageView:
        """Return the usage view, or raise QuotaExceededError with an upgrade link."""
        usage = await self.usage.get_view(user_id)
        if usage.can_generate:
            return usage

        checkout = await self.checkout.create_checkout(user_id)
        limit = self.usage.free_limit
        logger.info(
            "generation_denied",
            user_id=user_id,
            generated_count=usage.generated_count,
            checkout_available=checkout.ok,
        )
        raise QuotaExceededError(
            f"Free plan limit reached ({limit} image{'' if limit == 1 else 's'}). "
            "Upgrade to continue generating.",
            usage=usage,
            checkout_url=checkout.checkout_url,
            billing_message=None if checkout.ok else checkout.message,
        )

    async def _complete(
        self,
        user_id: str,
        original_prompt: str,
        optimization: PromptOptimization,
        image: ReveImage,
    ) -> GenerationResponse:
        record = await self.usage.record_generation(user_id)
        logger.info(
            "generation_succeeded",
            user_id=user_id,
            request_id=image.request_id,
            generated_count=record.generated_count,
        )
        return GenerationResponse(
            **image.to_client(),
            original_prompt=original_prompt,
            optimized_prompt=optimization.prompt,
            prompt_optimized=optimization.optimized,
            prompt_optimization_source=optimization.source,
            usage=self.usage.view(record),
        )
