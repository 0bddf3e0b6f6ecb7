import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from uvicorn import Config, Server

from .routers import nodes
from ..config import Settings
from ..errors import RegistryError
from ..registry.service import NodeRegistry
from ..service_manager.base_service import BaseService

logger = logging.getLogger("node-registry.api-gateway")


async def registry_error_handler(request: Request, exc: RegistryError) -> PlainTextResponse:
    if exc.status_code < 500:
        logger.debug(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")
    return PlainTextResponse(exc.message, status_code=exc.status_code)


def create_app(registry: NodeRegistry) -> FastAPI:
    """Build the HTTP app around an already constructed registry."""
    app = FastAPI(title="Node Registry API", version="1.0.0")
    app.state.registry = registry

    app.add_exception_handler(RegistryError, registry_error_handler)
    app.include_router(nodes.router)

    @app.get("/health")
    async def health():
        store_ok = await app.state.registry.ping()
        return JSONResponse(
            status_code=200 if store_ok else 503,
            content={
                "status": "ok" if store_ok else "degraded",
                "components": {
                    "store": "ok" if store_ok else "unreachable",
                },
            },
        )

    return app


class APIGatewayService(BaseService):
    """
    API Gateway Service.
    Responsibility: serve the registry HTTP API with uvicorn.
    """

    def __init__(self, settings: Settings, app: FastAPI):
        super().__init__("APIGatewayService")
        self._settings = settings
        self._app = app
        self._server: Optional[Server] = None
        self._task: Optional[asyncio.Task] = None

    async def start(self):
        logger.info(f"APIGatewayService starting on {self._settings.API_HOST}:{self._settings.API_PORT}")
        config = Config(
            app=self._app,
            host=self._settings.API_HOST,
            port=self._settings.API_PORT,
            log_level=self._settings.LOG_LEVEL.lower(),
            log_config=None,
        )
        self._server = Server(config)
        self._task = asyncio.create_task(self._server.serve())

    @property
    def task(self) -> Optional[asyncio.Task]:
        return self._task

    async def stop(self):
        if self._server:
            self._server.should_exit = True
        if self._task:
            await self._task
        logger.info("APIGatewayService stopped.")
