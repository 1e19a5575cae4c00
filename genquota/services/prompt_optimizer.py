"""Best-effort prompt rewriting through the LongCat chat-completions API."""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from genquota.config import Settings
from genquota.utils.logging import get_logger

logger = get_logger(__name__)

SYSTEM_PROMPT = (
    "You are a senior prompt engineer for high-end image generation. "
    "Rewrite user prompts to be clearer, visually specific, and concise while "
    "preserving user intent. Return only one optimized prompt with no markdown "
    "and no explanations."
)

USER_PROMPT_TEMPLATE = """Workflow: {workflow}
Postprocess: {operation}
User prompt: {prompt}

Rules:
- Keep under 200 words
- Keep intent unchanged
- Add useful composition/lighting/detail wording
- Avoid policy-sensitive content
- Output only the optimized prompt."""

SOURCE_ORIGINAL = "original"
SOURCE_LONGCAT = "longcat"


def clamp_prompt(value: str, max_length: int = 2560) -> str:
    """Trim and truncate a prompt before any external use."""
    return value.strip()[:max_length]


@dataclass(frozen=True)
class PromptOptimization:
    """Prompt to use plus where it came from."""

    prompt: str
    optimized: bool
    source: str


class PromptOptimizer:
    """Rewrites prompts; on any failure hands back the original unchanged."""

    def __init__(
        self,
        api_key: str | None,
        api_url: str,
        model: str = "LongCat-Flash-Chat",
        max_length: int = 2560,
        timeout: float = 30.0,
    ) -> None:
        self._api_key = api_key
        self._api_url = api_url
        self._model = model
        self._max_length = max_length
        self._timeout = timeout

    @classmethod
    def from_settings(cls, settings: Settings) -> "PromptOptimizer":
        api_key = settings.longcat_api_key
        return cls(
            api_key=api_key.get_secret_value() if api_key else None,
            api_url=settings.longcat_api_url,
            model=settings.longcat_model,
            max_length=settings.prompt_max_length,
            timeout=settings.http_timeout_seconds,
        )

    async def optimize(
        self, prompt: str, workflow: str, operation: str | None = None
    ) -> PromptOptimization:
        original = clamp_prompt(prompt, self._max_length)
        fallback = PromptOptimization(prompt=original, optimized=False, source=SOURCE_ORIGINAL)

        if not self._api_key or not original:
            return fallback

        body = {
            "model": self._model,
            "temperature": 0.3,
            "max_tokens": 350,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": USER_PROMPT_TEMPLATE.format(
                        workflow=workflow,
                        operation=operation or "none",
                        prompt=original,
                    ),
                },
            ],
        }

        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                response = await client.post(
                    self._api_url,
                    headers={"Authorization": f"Bearer {self._api_key}"},
                    json=body,
                )
            if response.is_error:
                logger.warning("prompt_optimization_failed", status=response.status_code)
                return fallback

            content = response.json()["choices"][0]["message"]["content"]
        except Exception as e:
            logger.warning("prompt_optimization_failed", error=str(e), error_type=type(e).__name__)
            return fallback

        rewritten = clamp_prompt(content, self._max_length) if isinstance(content, str) else ""
        rewritten = rewritten or original
        return PromptOptimization(
            prompt=rewritten,
            optimized=rewritten != original,
            source=SOURCE_LONGCAT,
        )
