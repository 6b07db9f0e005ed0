"""
Application container: builds and owns the service graph.

The binding client is the only long-lived shared resource; everything above
it is stateless and takes its collaborators as constructor arguments.
"""

import logging
from dataclasses import dataclass

from fastapi import Request

from app.config import Settings
from app.services.dapr_binding import DaprBindingClient
from app.services.feedback_repository import FeedbackRepository
from app.services.feedback_service import FeedbackService
from app.services.relational_gateway import RelationalGateway
from app.services.strategy_analyzer import FeedbackClassifier, get_classifier


@dataclass
class Container:
    binding: DaprBindingClient
    gateway: RelationalGateway
    repository: FeedbackRepository
    classifier: FeedbackClassifier
    feedback_service: FeedbackService

    @classmethod
    def build(cls, settings: Settings) -> "Container":
        binding = DaprBindingClient(
            binding_name=settings.db_binding_name,
            base_url=settings.dapr_base_url,
            timeout=settings.binding_timeout_s,
            api_token=settings.dapr_api_token,
            logger=logging.getLogger("app.services.dapr_binding"),
        )
        gateway = RelationalGateway(binding, logger=logging.getLogger("app.services.relational_gateway"))
        repository = FeedbackRepository(gateway, logger=logging.getLogger("app.services.feedback_repository"))
        classifier = get_classifier(settings.classifier)
        service = FeedbackService(
            repository,
            classifier,
            logger=logging.getLogger("app.services.feedback_service"),
        )
        return cls(
            binding=binding,
            gateway=gateway,
            repository=repository,
            classifier=classifier,
            feedback_service=service,
        )

    async def aclose(self) -> None:
        await self.binding.aclose()


def get_container(request: Request) -> Container:
    """FastAPI dependency: the container built by the app lifespan."""
    return request.app.state.container


def get_feedback_service(request: Request) -> FeedbackService:
    return get_container(request).feedback_service


def get_gateway(request: Request) -> RelationalGateway:
    return get_container(request).gateway
