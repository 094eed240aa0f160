"""
Real Factory Service Implementation

Production client for the pizza factory.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - FACTORY_URL points at the factory
    - FACTORY_API_KEY is sent as a bearer token

Protocol:
    POST {FACTORY_URL}/api/order
    {"diner": {"id", "name", "email"}, "order": {...}}
    → 2xx {"reportUrl", "jwt"} or non-2xx {"reportUrl", "message"}
"""

import logging
import time
from typing import Any, Optional

import httpx

from pizza_service.core.config import get_settings
from pizza_service.services.factory.base import BaseFactoryService, FactoryResult

logger = logging.getLogger(__name__)


class RealFactoryService(BaseFactoryService):
    """
    Talks to the real pizza factory over HTTP.

    Example:
        >>> service = RealFactoryService()
        >>> result = await service.submit_order(diner, order)
        >>> result.report_url
        'https://pizza-factory.cs329.click/api/report?...'
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            base_url: Factory root URL (defaults to FACTORY_URL)
            api_key: Factory API key (defaults to FACTORY_API_KEY)
            timeout: Request timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)

        Raises:
            ValueError: If no API key is configured
        """
        settings = get_settings()

        self.base_url = (base_url or settings.factory_url).rstrip("/")
        self.api_key = api_key or settings.factory_api_key
        self.timeout = timeout if timeout is not None else settings.factory_timeout
        self._transport = transport

        if not self.api_key:
            raise ValueError(
                "FACTORY_API_KEY is required outside development mode. "
                "Set it in your .env file or environment variables."
            )

        logger.info(f"RealFactoryService initialized (url={self.base_url})")

    @property
    def provider_name(self) -> str:
        return "http"

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self._transport,
            headers={"Authorization": f"Bearer {self.api_key}"},
        )

    async def submit_order(
        self,
        diner: dict[str, Any],
        order: dict[str, Any],
    ) -> FactoryResult:
        start_time = time.perf_counter()

        try:
            async with self._client() as client:
                response = await client.post(
                    "/api/order",
                    json={"diner": diner, "order": order},
                )
        except httpx.HTTPError as e:
            elapsed = round((time.perf_counter() - start_time) * 1000, 2)
            logger.error(f"Factory unreachable for order #{order.get('id')}: {e}")
            return FactoryResult(
                success=False,
                error_message=f"Factory unreachable: {e}",
                response_time_ms=elapsed,
            )

        elapsed = round((time.perf_counter() - start_time) * 1000, 2)

        try:
            body = response.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}

        if response.is_success:
            logger.info(
                f"Factory accepted order #{order.get('id')} "
                f"(status={response.status_code}, {elapsed}ms)"
            )
            return FactoryResult(
                success=True,
                report_url=body.get("reportUrl"),
                jwt=body.get("jwt"),
                status_code=response.status_code,
                response_time_ms=elapsed,
            )

        logger.warning(
            f"Factory rejected order #{order.get('id')} "
            f"(status={response.status_code}, report={body.get('reportUrl')})"
        )
        return FactoryResult(
            success=False,
            report_url=body.get("reportUrl"),
            error_message=body.get("message") or response.reason_phrase,
            status_code=response.status_code,
            response_time_ms=elapsed,
        )

    async def health_check(self) -> bool:
        try:
            async with self._client() as client:
                response = await client.get("/")
            return response.status_code < 500
        except httpx.HTTPError as e:
            logger.error(f"Factory health check failed: {e}")
            return False
