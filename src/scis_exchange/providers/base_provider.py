"""
Base Provider Interface

Defines the lifecycle shared by the external collaborators the service
talks to: the FHIR endpoint client and the sentiment classifier.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass
class ProviderConfig:
    """Base configuration for providers"""
    timeout_seconds: int = 30

    def __post_init__(self):
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")


class BaseProvider(ABC):
    """
    Abstract base class for providers

    Subclasses acquire their resources in initialize() and release them
    in cleanup(). Both are called once per process by the service context.
    """

    def __init__(self, config: ProviderConfig = None):
        self.config = config or ProviderConfig()
        self.provider_name = self.__class__.__name__.replace('Provider', '').lower()
        self._initialized = False
        self.total_calls = 0
        self.failed_calls = 0

    @abstractmethod
    async def initialize(self) -> None:
        """
        Initialize the provider

        This method should set up any connections or models
        needed by the provider.
        """
        pass

    @property
    def initialized(self) -> bool:
        return self._initialized

    def get_stats(self) -> Dict[str, Any]:
        """
        Get provider statistics

        Providers may override to add detail.
        """
        return {
            'provider': self.provider_name,
            'initialized': self._initialized,
            'total_calls': self.total_calls,
            'failed_calls': self.failed_calls,
            'config': {
                'timeout_seconds': self.config.timeout_seconds,
            }
        }

    async def cleanup(self) -> None:
        """
        Cleanup provider resources
        """
        self._initialized = False
