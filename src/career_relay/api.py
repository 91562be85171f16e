# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_sandbox

"""HTTP surface: webhook ingress, health check and static serving of stored files."""

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

from fastapi import FastAPI, Request, Response
from fastapi.staticfiles import StaticFiles

from career_relay.config import RelayConfig
from career_relay.factory import RelayFactory, RelayServices
from career_relay.models.intake import IntakeResult
from career_relay.sanitizer import escape_json_value
from career_relay.storage import CACHE_CONTROL
from career_relay.utils.logger import logger


def webhook_response(result: IntakeResult) -> dict[str, Any]:
    """Shape an intake result into the body returned to the chat-bot platform.

    The platform cannot usefully retry, so every outcome is answered with 200.
    """
    if result.status == "processed":
        return {
            "success": True,
            "message": result.message,
            "contactId": result.contact_id,
            "dealId": result.deal_id,
        }
    if result.status == "unparsed":
        return {
            "success": True,
            "parsed": False,
            "message": result.message,
            "raw": escape_json_value(result.raw or ""),
        }
    return {"success": False, "error": result.message}


def create_app(services: RelayServices | None = None, config: RelayConfig | None = None) -> FastAPI:
    """Build the FastAPI application.

    Args:
        services: Pre-built services. Built from ``config`` when omitted.
        config: Configuration used when ``services`` is omitted.
    """
    services = services or RelayFactory.build(config)
    config = services.config

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        logger.info(f"Career relay API starting (static files under {config.public_path_prefix})")
        yield
        await services.aclose()
        logger.info("Career relay API stopped")

    app = FastAPI(title="Career Relay", version="0.1.0", lifespan=lifespan)
    app.state.services = services
    static_prefix = config.public_path_prefix.rstrip("/")

    @app.middleware("http")
    async def static_headers(request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        response = await call_next(request)
        if static_prefix and request.url.path.startswith(f"{static_prefix}/"):
            response.headers["Access-Control-Allow-Origin"] = "*"
            response.headers["Cache-Control"] = CACHE_CONTROL
        return response

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "storage": config.storage_backend,
            "cache": "memory" if services.cache.using_memory else "redis",
            "sweep_running": services.sweep.running,
        }

    @app.post("/webhook")
    async def webhook(request: Request) -> dict[str, Any]:
        body = await request.body()
        logger.info(f"Webhook received ({len(body)} bytes)")
        result = await services.intake.process(body)
        logger.info(f"Webhook processed with status {result.status}")
        return webhook_response(result)

    if config.storage_backend == "local" and static_prefix:
        config.storage_dir.mkdir(parents=True, exist_ok=True)
        app.mount(static_prefix, StaticFiles(directory=config.storage_dir), name="stored-files")

    return app


def main() -> None:
    """Entry point for the HTTP server."""
    import uvicorn

    config = RelayConfig()
    uvicorn.run(create_app(config=config), host=config.api_host, port=config.api_port)


if __name__ == "__main__":  # pragma: no cover
    main()
