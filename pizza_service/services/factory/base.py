"""
Factory Service Abstract Base Class

Defines the interface contract for every pizza factory client.
MockFactoryService and RealFactoryService implement it, so the order
router behaves identically whichever one is active.

Design Pattern: Strategy Pattern
    - Runtime switching between the mock and the real factory
    - Tests swap in their own implementation through FastAPI overrides
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional


@dataclass
class FactoryResult:
    """
    Standardized result of submitting an order to the factory.

    Attributes:
        success: Whether the factory accepted the order
        report_url: Link to the factory's report for this order (set on
            success and, when the factory provides one, on failure)
        jwt: Factory-signed order token, only on success
        error_message: Description of the failure
        status_code: HTTP status returned by the factory, if any
        response_time_ms: Round-trip time of the call
    """
    success: bool
    report_url: Optional[str] = None
    jwt: Optional[str] = None
    error_message: Optional[str] = None
    status_code: Optional[int] = None
    response_time_ms: float = 0.0

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "report_url": self.report_url,
            "jwt": self.jwt,
            "error_message": self.error_message,
            "status_code": self.status_code,
            "response_time_ms": self.response_time_ms,
        }


class BaseFactoryService(ABC):
    """Abstract base class for pizza factory clients."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the factory provider (e.g. "mock", "http")."""
        pass

    @abstractmethod
    async def submit_order(
        self,
        diner: dict[str, Any],
        order: dict[str, Any],
    ) -> FactoryResult:
        """
        Hand a persisted order to the factory for fulfillment.

        Args:
            diner: ``{"id", "name", "email"}`` of the ordering user
            order: The stored order in its JSON wire form

        Returns:
            FactoryResult: Never raises for factory-side failures
        """
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the factory.

        Returns:
            bool: True if the factory is reachable
        """
        pass
