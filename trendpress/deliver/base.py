"""Abstract base class for publishing transports."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from trendpress.models import DeliveryStage


@dataclass
class PublishOutcome:
    external_id: str
    delivery_stage: DeliveryStage
    response: Any = None


class BasePublisher(ABC):
    """Accepts a title and body and hands them to an outside platform."""

    def __init__(self, settings: dict):
        self.settings = settings

    @abstractmethod
    async def publish(self, title: str, content: str, account_id: int) -> PublishOutcome:
        """Deliver one article. Raises PublishError on transport failure."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name recorded on publish jobs."""
        ...
