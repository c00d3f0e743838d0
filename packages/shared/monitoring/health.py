"""Liveness and readiness endpoints."""

import time
from enum import Enum
from typing import Awaitable, Callable, List, Optional, Tuple

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class DependencyStatus(str, Enum):
    """Status of a dependency check."""

    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    DEGRADED = "degraded"


class DependencyCheck(BaseModel):
    """Result of a single dependency check."""

    name: str
    status: DependencyStatus
    message: Optional[str] = None
    latency_ms: Optional[float] = None


CheckFn = Callable[[Request], Awaitable[DependencyCheck]]


class HealthChecker:
    """Runs registered dependency checks for the readiness probe."""

    def __init__(self, service_name: str, version: str = "0.1.0"):
        self.service_name = service_name
        self.version = version
        self._checks: List[Tuple[str, CheckFn]] = []

    def add_check(self, name: str, check: CheckFn) -> None:
        self._checks.append((name, check))

    async def check_dependencies(self, request: Request) -> List[DependencyCheck]:
        results = []
        for name, check_fn in self._checks:
            started = time.perf_counter()
            try:
                result = await check_fn(request)
            except Exception as e:
                result = DependencyCheck(
                    name=name,
                    status=DependencyStatus.UNHEALTHY,
                    message=str(e),
                )
            if result.latency_ms is None:
                result.latency_ms = round((time.perf_counter() - started) * 1000, 2)
            results.append(result)
        return results

    async def readiness(self, request: Request) -> dict:
        dependencies = await self.check_dependencies(request)
        statuses = {d.status for d in dependencies}
        if DependencyStatus.UNHEALTHY in statuses:
            overall = DependencyStatus.UNHEALTHY
        elif DependencyStatus.DEGRADED in statuses:
            overall = DependencyStatus.DEGRADED
        else:
            overall = DependencyStatus.HEALTHY

        return {
            "status": overall.value,
            "service": self.service_name,
            "version": self.version,
            "dependencies": [d.model_dump(mode="json") for d in dependencies],
        }


def health_router(health_checker: HealthChecker) -> APIRouter:
    """Create FastAPI router with /health and /ready endpoints."""
    router = APIRouter(tags=["Health"])

    @router.get("/health")
    async def health():
        """Liveness probe - is the process running."""
        return {
            "status": DependencyStatus.HEALTHY.value,
            "service": health_checker.service_name,
            "version": health_checker.version,
        }

    @router.get("/ready")
    async def ready(request: Request):
        """Readiness probe - 503 while any dependency is unhealthy."""
        body = await health_checker.readiness(request)
        status_code = 503 if body["status"] == DependencyStatus.UNHEALTHY.value else 200
        return JSONResponse(status_code=status_code, content=body)

    return router
