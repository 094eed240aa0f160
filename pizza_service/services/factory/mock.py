"""
Mock Factory Service Implementation

Simulates the pizza factory without making network calls.
Used in development mode (ENV_MODE=development) to:
    - Exercise the complete order flow locally
    - Run load simulations without a factory API key

Behavior:
    - Optional simulated latency
    - Optionally fails a share of orders (reports a chaos link, no token)
    - Returns a locally signed order token on success
"""

import asyncio
import random
import uuid
from collections import deque
import logging
from datetime import datetime
from typing import Any

from jose import jwt

from pizza_service.services.factory.base import BaseFactoryService, FactoryResult

logger = logging.getLogger(__name__)


class MockFactoryService(BaseFactoryService):
    """
    Mock implementation of the factory service.

    Attributes:
        failure_rate: Probability of a simulated factory failure (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds

    Example:
        >>> service = MockFactoryService(failure_rate=0.0)
        >>> result = await service.submit_order(diner, order)
        >>> result.success
        True
    """

    REPORT_BASE_URL = "http://localhost/mock-factory/report"
    SIGNING_KEY = "mock-factory-key"
    HISTORY_SIZE = 100

    def __init__(
        self,
        failure_rate: float = 0.0,
        min_latency: float = 0.0,
        max_latency: float = 0.0,
    ):
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        # Most recent submissions only
        self.submitted: deque[dict[str, Any]] = deque(maxlen=self.HISTORY_SIZE)

        logger.info(
            f"MockFactoryService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    async def _simulate_latency(self) -> float:
        """Sleep for a random latency and return it in milliseconds."""
        latency = random.uniform(self.min_latency, self.max_latency)
        if latency > 0:
            await asyncio.sleep(latency)
        return latency * 1000

    def _should_fail(self) -> bool:
        return random.random() < self.failure_rate

    async def submit_order(
        self,
        diner: dict[str, Any],
        order: dict[str, Any],
    ) -> FactoryResult:
        elapsed_ms = await self._simulate_latency()
        report_id = uuid.uuid4().hex[:16]
        report_url = f"{self.REPORT_BASE_URL}/{report_id}"
        self.submitted.append({"diner": diner, "order": order})

        if self._should_fail():
            logger.warning(f"Mock factory: order #{order.get('id')} failed ({report_id})")
            return FactoryResult(
                success=False,
                report_url=report_url,
                error_message="Simulated factory failure",
                status_code=500,
                response_time_ms=elapsed_ms,
            )

        token = jwt.encode(
            {
                "vendor": {"id": "mock", "name": "Mock Factory"},
                "diner": diner,
                "order": order,
                "iat": int(datetime.now().timestamp()),
            },
            self.SIGNING_KEY,
            algorithm="HS256",
        )
        logger.info(f"Mock factory: order #{order.get('id')} fulfilled ({elapsed_ms:.0f}ms)")
        return FactoryResult(
            success=True,
            report_url=report_url,
            jwt=token,
            status_code=200,
            response_time_ms=elapsed_ms,
        )

    async def health_check(self) -> bool:
        return True
