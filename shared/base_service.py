"""
Base service class for Collection Browser services.

Wraps a FastAPI application with the pieces every service needs: request
correlation, Prometheus instrumentation, a dependency-aware health check and
uniform JSON error bodies.
"""

import os
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest

from shared.config import ServiceConfig, get_config
from shared.errors import BrowserException
from shared.logging import clear_context, configure_logging, get_logger, set_request_id
from shared.metrics import get_metrics_collector

REQUEST_ID_HEADER = "X-Request-ID"
VERSION = "1.0.0"


class BaseService:
    """Base service class with common functionality."""

    def __init__(
        self,
        service_name: str,
        port: int,
        config: Optional[ServiceConfig] = None,
        *,
        registry: Optional[CollectorRegistry] = None,
    ):
        self.service_name = service_name
        self.port = port
        self.config = config or get_config(service_name, port)

        configure_logging(service_name, self.config.log_level)
        self.logger = get_logger(service_name)
        self.metrics = get_metrics_collector(service_name, registry)
        self._started_at = time.monotonic()

        self.app = FastAPI(
            title=f"{service_name.title()} Service",
            description=f"Collection Browser - {service_name.title()} Service",
            version=VERSION,
            docs_url="/docs" if self.config.env == "local" else None,
            redoc_url=None,
            lifespan=self._lifespan,
        )
        self._setup_middleware()
        self._register_error_handlers()
        self._setup_routes()

    @asynccontextmanager
    async def _lifespan(self, app: FastAPI) -> AsyncIterator[None]:
        await self.startup()
        self.logger.info("Service started", port=self.port, env=self.config.env)
        try:
            yield
        finally:
            await self.shutdown()
            self.logger.info("Service stopped")

    async def startup(self) -> None:
        """Acquire resources. Override in subclasses."""

    async def shutdown(self) -> None:
        """Release resources. Override in subclasses."""

    def _setup_middleware(self):
        self.app.add_middleware(
            CORSMiddleware,
            allow_origins=["*"] if self.config.env == "local" else [],
            allow_credentials=True,
            allow_methods=["GET"],
            allow_headers=["*"],
        )

        @self.app.middleware("http")
        async def correlate_and_measure(request: Request, call_next):
            request_id = set_request_id(request.headers.get(REQUEST_ID_HEADER))
            started = time.perf_counter()
            try:
                response = await call_next(request)
            finally:
                clear_context()
            duration = time.perf_counter() - started

            # Label by route template so path parameters don't explode cardinality
            route = request.scope.get("route")
            endpoint = getattr(route, "path", request.url.path)
            self.metrics.record_http_request(request.method, endpoint, response.status_code, duration)

            response.headers[REQUEST_ID_HEADER] = request_id
            self.logger.info(
                "HTTP request",
                method=request.method,
                path=request.url.path,
                status_code=response.status_code,
                duration_ms=round(duration * 1000, 2),
                request_id=request_id,
            )
            return response

    def _register_error_handlers(self):
        @self.app.exception_handler(BrowserException)
        async def browser_exception_handler(request: Request, exc: BrowserException):
            log = self.logger.error if exc.status_code >= 500 else self.logger.warning
            log("Request failed", code=exc.code, message=exc.message, details=exc.details)
            self.metrics.record_error(exc.code)
            return JSONResponse(status_code=exc.status_code, content=exc.to_response().model_dump())

        @self.app.exception_handler(Exception)
        async def unhandled_exception_handler(request: Request, exc: Exception):
            self.logger.error("Unhandled exception", error=str(exc), exc_info=True)
            self.metrics.record_error("INTERNAL_ERROR")
            return JSONResponse(
                status_code=500,
                content={"code": "INTERNAL_ERROR", "message": "Internal server error", "details": {}},
            )

    def _setup_routes(self):
        @self.app.get("/health")
        async def health_check():
            """Report service status; 503 when any dependency is not ok."""
            try:
                dependencies = await self._check_dependencies()
            except Exception as e:
                self.logger.error("Health check failed", error=str(e))
                dependencies = {"error": str(e)}

            healthy = all(state == "ok" for state in dependencies.values())
            status = "ok" if healthy else "degraded"
            self.metrics.record_health_check(status)

            body = {
                "service": self.service_name,
                "status": status,
                "uptime_seconds": round(time.monotonic() - self._started_at, 3),
                "dependencies": dependencies,
                "version": VERSION,
                "commit": os.getenv("GIT_COMMIT", "unknown"),
            }
            return JSONResponse(status_code=200 if healthy else 503, content=body)

        @self.app.get("/metrics")
        async def metrics_endpoint():
            return Response(content=generate_latest(self.metrics.registry), media_type=CONTENT_TYPE_LATEST)

    async def _check_dependencies(self) -> Dict[str, str]:
        """Map dependency name to "ok" or a failure state. Override in subclasses."""
        return {}

    def run(self):
        """Run the service under uvicorn."""
        import uvicorn
        uvicorn.run(
            self.app,
            host=self.config.host,
            port=self.config.port,
            log_level=self.config.log_level.lower()
        )
