"""FastAPI dependencies resolving the components built at app creation."""

from typing import Annotated

from fastapi import Depends, Request

from genquota.services import (
    BillingWebhookProcessor,
    GenerationOrchestrator,
    LemonCheckoutGateway,
    Services,
    UsageService,
)


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_usage_service(services: Services = Depends(get_services)) -> UsageService:
    return services.usage


def get_checkout_gateway(services: Services = Depends(get_services)) -> LemonCheckoutGateway:
    return services.checkout


def get_webhook_processor(services: Services = Depends(get_services)) -> BillingWebhookProcessor:
    return services.webhook


def get_orchestrator(services: Services = Depends(get_services)) -> GenerationOrchestrator:
    return services.orchestrator


# Type aliases for cleaner dependency injection
Usage = Annotated[UsageService, Depends(get_usage_service)]
Checkout = Annotated[LemonCheckoutGateway, Depends(get_checkout_gateway)]
WebhookProcessor = Annotated[BillingWebhookProcessor, Depends(get_webhook_processor)]
Orchestrator = Annotated[GenerationOrchestrator, Depends(get_orchestrator)]
