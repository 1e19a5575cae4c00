"""Image generation endpoints gated by the free quota and subscription."""

from fastapi import APIRouter

from genquota.dependencies import Orchestrator
from genquota.models import CreateRemoveBgRequest, EnhanceRequest, GenerationResponse

router = APIRouter(prefix="/reve", tags=["generation"])


@router.post(
    "/create-remove-bg",
    response_model=GenerationResponse,
    summary="Generate an image and remove its background",
    description="Returns 402 with an upgrade link once the free allowance is used up.",
)
async def create_remove_bg(
    payload: CreateRemoveBgRequest, orchestrator: Orchestrator
) -> GenerationResponse:
    return await orchestrator.create_remove_bg(payload)


@router.post(
    "/enhance",
    response_model=GenerationResponse,
    summary="Remove the background of, or upscale, a reference image",
    description="Upscale factors other than 2, 3 or 4 are treated as 2.",
)
async def enhance(payload: EnhanceRequest, orchestrator: Orchestrator) -> GenerationResponse:
    return await orchestrator.enhance(payload)
