"""Acceptance test execution against a freshly deployed stack."""

import asyncio
import math
import time
from collections.abc import Callable

import aiohttp
import structlog
from pydantic import BaseModel, Field

from ..core.exceptions import APITestError
from ..models.stack import APIEndpoint, APITestTemplate


class EndpointResult(BaseModel):
    """Outcome of all requests sent to one endpoint."""

    method: str
    url: str
    requests: int = 0
    failures: int = 0
    latencies_ms: list[float] = Field(default_factory=list)

    @property
    def average_latency_ms(self) -> float:
        if not self.latencies_ms:
            return 0.0
        return sum(self.latencies_ms) / len(self.latencies_ms)


class APITestReport(BaseModel):
    """Aggregated result of one template run."""

    template: str
    endpoints: list[EndpointResult] = Field(default_factory=list)

    @property
    def failures(self) -> int:
        return sum(e.failures for e in self.endpoints)


class APITester:
    """Fire a template's requests at ``request_per_second`` for ``duration`` seconds."""

    def __init__(
        self,
        template: APITestTemplate,
        session_factory: Callable[[], aiohttp.ClientSession] | None = None,
        sleep=asyncio.sleep,
        request_timeout: float = 10.0,
    ):
        self.template = template
        self.session_factory = session_factory or (
            lambda: aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=request_timeout))
        )
        self.sleep = sleep
        self.logger = structlog.get_logger().bind(component="api_test", template=template.name)

    async def run(self) -> APITestReport:
        """Run the template.

        Raises:
            APITestError: If any request failed or returned an error status
        """
        report = APITestReport(
            template=self.template.name,
            endpoints=[EndpointResult(method=api.method, url=api.url) for api in self.template.apis],
        )
        iterations = max(1, math.ceil(self.template.duration))

        async with self.session_factory() as session:
            for _ in range(iterations):
                requests = [
                    self._send(session, api, result)
                    for api, result in zip(self.template.apis, report.endpoints)
                    for _ in range(self.template.request_per_second)
                ]
                await asyncio.gather(*requests)
                await self.sleep(1)

        for result in report.endpoints:
            self.logger.info(
                "API test result",
                method=result.method,
                url=result.url,
                requests=result.requests,
                failures=result.failures,
                average_latency_ms=round(result.average_latency_ms, 2),
            )

        if report.failures:
            raise APITestError(
                f"api test {self.template.name} failed: {report.failures} failed requests"
            )
        return report

    async def _send(
        self, session: aiohttp.ClientSession, api: APIEndpoint, result: EndpointResult
    ) -> None:
        started = time.perf_counter()
        result.requests += 1
        try:
            async with session.request(
                api.method, api.url, data=api.body, headers=api.header
            ) as response:
                await response.read()
                if response.status >= 400:
                    result.failures += 1
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            self.logger.warning("API test request failed", url=api.url, error=str(e))
            result.failures += 1
        finally:
            result.latencies_ms.append((time.perf_counter() - started) * 1000)
