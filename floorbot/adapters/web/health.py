"""Liveness endpoint — FastAPI routes and the uvicorn server that hosts them."""

import asyncio
import contextlib
import logging
from typing import Any, Dict, Optional

import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from floorbot.domain.models import HealthStatus
from floorbot.ports.outbound import HealthPort

logger = logging.getLogger(__name__)

health_router = APIRouter(tags=["Health"])


class HealthResponse(BaseModel):
    status: str


class StatusResponse(BaseModel):
    status: str
    gateway: Dict[str, Any]


def _probe(request: Request) -> HealthPort:
    return request.app.state.health_probe


@health_router.get("/health", response_model=HealthResponse)
async def health(request: Request):
    status = _probe(request).health()
    body = HealthResponse(status=status.value).model_dump()
    if status == HealthStatus.DEGRADED:
        return JSONResponse(body, status_code=503)
    return body


@health_router.get("/status", response_model=StatusResponse)
async def status(request: Request):
    probe = _probe(request)
    return StatusResponse(status=probe.health().value, gateway=probe.snapshot())


def create_health_app(probe: HealthPort) -> FastAPI:
    # Only /health and /status exist; everything else is a 404
    app = FastAPI(title="Floor Price Bot", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.health_probe = probe
    app.include_router(health_router)
    return app


class _EmbeddedServer(uvicorn.Server):
    """uvicorn server that leaves SIGINT/SIGTERM to the app runner."""

    def install_signal_handlers(self) -> None:
        pass

    @contextlib.contextmanager
    def capture_signals(self):
        yield


class LivenessServer:
    """Runs the health app on its own uvicorn server task."""

    def __init__(self, app: FastAPI, host: str = "0.0.0.0", port: int = 8080):
        config = uvicorn.Config(app, host=host, port=port, log_level="warning", lifespan="off")
        self._server = _EmbeddedServer(config)
        self._task: Optional[asyncio.Task] = None
        self.host = host
        self.port = port

    @property
    def started(self) -> bool:
        return self._server.started

    def start(self) -> asyncio.Task:
        if self._task is None:
            logger.info("Liveness endpoint listening on %s:%d", self.host, self.port)
            self._task = asyncio.create_task(self._server.serve())
        return self._task

    async def stop(self) -> None:
        if self._task is None:
            return
        self._server.should_exit = True
        await asyncio.gather(self._task, return_exceptions=True)
        self._task = None
        logger.info("Liveness endpoint stopped")
