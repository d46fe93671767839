"""
FastAPI-powered control surface for running probes and reading the log.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

import uvicorn
from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel, Field

from ..core.config import ConfigError
from ..core.contracts import ResultEnvelope
from ..core.orchestrator import ProbeOrchestrator
from ..probes import resolve_probe_name

logger = logging.getLogger(__name__)


class CredentialsUpdate(BaseModel):
    """Partial credential change; omitted fields keep their value."""

    publishable_key: str | None = Field(default=None)
    business_id: str | None = Field(default=None)
    sdk_token: str | None = Field(default=None)


def _envelope_body(envelope: ResultEnvelope | None) -> dict[str, Any] | None:
    if envelope is None:
        return None
    return jsonable_encoder(envelope.model_dump(mode="python"))


class ControlApi:
    """Expose HTTP endpoints that drive a probe orchestrator."""

    def __init__(
        self,
        orchestrator: ProbeOrchestrator,
        *,
        host: str = "127.0.0.1",
        port: int = 8080,
        serve_api: bool = True,
        config_factory: Callable[..., uvicorn.Config] | None = None,
        server_factory: Callable[[uvicorn.Config], uvicorn.Server] | None = None,
    ) -> None:
        self._orchestrator = orchestrator
        self._host = host
        self._port = port
        self._serve_api = serve_api
        self._app: FastAPI | None = None
        self._server: uvicorn.Server | None = None
        self._server_task: asyncio.Task[None] | None = None
        self._config_factory = config_factory or uvicorn.Config
        self._server_factory = server_factory or uvicorn.Server

    async def start(self) -> None:
        self._app = self._build_app()
        if not self._serve_api:
            logger.info("ControlApi running in embedded-only mode (no HTTP server).")
            return
        config = self._config_factory(
            app=self._app,
            host=self._host,
            port=self._port,
            loop="asyncio",
            lifespan="on",
            log_level="info",
        )
        self._server = self._server_factory(config)
        self._server_task = asyncio.create_task(self._server.serve())
        logger.info("ControlApi listening on http://%s:%s", self._host, self._port)

    async def stop(self) -> None:
        if self._server_task:
            self._server.should_exit = True  # type: ignore[union-attr]
            await asyncio.wait(
                [self._server_task],
                timeout=1,
            )
            self._server_task = None
        self._server = None

    @property
    def app(self) -> FastAPI:
        if self._app is None:
            raise RuntimeError("ControlApi has not been started yet.")
        return self._app

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="AxraPay SDK Probe API", version="0.1.0")
        harness = self._orchestrator

        @app.get("/health")
        async def health() -> dict[str, str]:
            return {"status": "ok", "client_state": harness.state.value}

        @app.get("/config")
        async def read_config() -> dict[str, str]:
            return harness.config.current.masked()

        @app.put("/config")
        async def update_config(request: CredentialsUpdate) -> dict[str, str]:
            changes = request.model_dump(exclude_none=True)
            try:
                credentials = harness.config.update(**changes)
            except ConfigError as exc:
                raise HTTPException(status_code=400, detail=str(exc)) from exc
            return credentials.masked()

        @app.get("/probes")
        async def list_probes() -> dict[str, Any]:
            return {"probes": harness.probe_names, "ready": harness.is_ready()}

        @app.post("/probes/{name}")
        async def run_probe(name: str) -> dict[str, Any] | None:
            probe_name = resolve_probe_name(name)
            if probe_name not in harness.probe_names:
                raise HTTPException(status_code=404, detail=f"Unknown probe '{name}'.")
            envelope = await harness.run(probe_name)
            return _envelope_body(envelope)

        @app.get("/results")
        async def results() -> dict[str, Any]:
            return {slot: _envelope_body(env) for slot, env in harness.results.snapshot().items()}

        @app.get("/logs")
        async def logs() -> list[dict[str, Any]]:
            return [entry.model_dump(mode="json") for entry in harness.logs.entries]

        @app.delete("/logs")
        async def clear_logs() -> dict[str, str]:
            harness.clear_logs()
            return {"status": "cleared"}

        @app.get("/surfaces/{surface_id}")
        async def read_surface(surface_id: str) -> dict[str, Any]:
            surface = harness.surfaces.get(surface_id)
            if surface is None:
                raise HTTPException(status_code=404, detail=f"Unknown surface '{surface_id}'.")
            return jsonable_encoder(surface.as_dict())

        @app.post("/surfaces/{surface_id}/clear")
        async def clear_surface(surface_id: str) -> dict[str, str]:
            if not harness.clear_surface(surface_id):
                raise HTTPException(status_code=404, detail=f"Unknown surface '{surface_id}'.")
            return {"status": "cleared"}

        @app.post("/reset")
        async def reset() -> dict[str, str]:
            harness.reset()
            return {"status": "reset", "client_state": harness.state.value}

        return app


__all__ = ["ControlApi", "CredentialsUpdate"]
