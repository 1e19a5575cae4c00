"""Services package and component wiring."""

from dataclasses import dataclass

from genquota.config import Settings
from genquota.services.checkout import LemonCheckoutGateway
from genquota.services.image_provider import ReveImageClient
from genquota.services.orchestrator import GenerationOrchestrator
from genquota.services.prompt_optimizer import PromptOptimizer
from genquota.services.usage import UsageService, build_usage_view
from genquota.services.usage_store import (
    FallbackUsageStore,
    LocalUsageStore,
    UsageStore,
    build_usage_store,
)
from genquota.services.webhook import BillingWebhookProcessor


@dataclass
class Services:
    """Components shared by the request handlers."""

    store: UsageStore
    usage: UsageService
    webhook: BillingWebhookProcessor
    checkout: LemonCheckoutGateway
    optimizer: PromptOptimizer
    images: ReveImageClient
    orchestrator: GenerationOrchestrator


def build_services(
    settings: Settings,
    store: UsageStore | None = None,
    checkout: LemonCheckoutGateway | None = None,
    optimizer: PromptOptimizer | None = None,
    images: ReveImageClient | None = None,
) -> Services:
    """Wire every component from one Settings object; keyword overrides replace collaborators."""
    store = store or build_usage_store(settings)
    usage = UsageService(store, settings.free_image_limit)

    secret = settings.lemon_squeezy_webhook_secret
    webhook = BillingWebhookProcessor(usage, secret.get_secret_value() if secret else None)

    checkout = checkout or LemonCheckoutGateway.from_settings(settings)
    optimizer = optimizer or PromptOptimizer.from_settings(settings)
    images = images or ReveImageClient.from_settings(settings)

    return Services(
        store=store,
        usage=usage,
        webhook=webhook,
        checkout=checkout,
        optimizer=optimizer,
        images=images,
        orchestrator=GenerationOrchestrator(usage, checkout, optimizer, images),
    )


__all__ = [
    "BillingWebhookProcessor",
    "FallbackUsageStore",
    "GenerationOrchestrator",
    "LemonCheckoutGateway",
    "LocalUsageStore",
    "PromptOptimizer",
    "ReveImageClient",
    "Services",
    "UsageService",
    "UsageStore",
    "build_services",
    "build_usage_store",
    "build_usage_view",
]
