"""FastAPI application entrypoint — lifespan, error handling, and routes."""

import logging
import time
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse

from mediagate.api.bundle import router as bundle_router
from mediagate.api.gallery import router as gallery_router
from mediagate.api.health import router as health_router
from mediagate.api.images import router as images_router
from mediagate.api.proxy import router as proxy_router
from mediagate.config import Settings, _resolve_env_file
from mediagate.errors import GatewayError
from mediagate.gateway import create_gateway

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger("main")


async def _gateway_error_handler(request: Request, exc: GatewayError):
    if exc.status_code >= 500:
        logger.warning("%s %s -> %d (%s)", request.method, request.url.path, exc.status_code, exc.__class__.__name__)
    return PlainTextResponse(exc.detail, status_code=exc.status_code)


def create_app(settings: Settings | None = None, transport: httpx.AsyncBaseTransport | None = None) -> FastAPI:
    """Build the application.  ``transport`` stands in for the network in tests."""
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Startup and shutdown logic."""
        env_path = _resolve_env_file()
        logger.info(
            "Starting media gateway (env_file=%s, exists=%s)",
            env_path, env_path.exists(),
        )
        settings.warn_insecure_defaults()
        app.state.start_time = time.time()
        app.state.gateway = create_gateway(settings, transport=transport)
        logger.info("Server ready")
        yield

        logger.info("Shutting down")
        await app.state.gateway.aclose()
        logger.info("Shutdown complete")

    app = FastAPI(title="Media Gateway", lifespan=lifespan, redoc_url=None)
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["Content-Type", "Range"],
    )
    app.add_exception_handler(GatewayError, _gateway_error_handler)

    app.include_router(proxy_router)
    app.include_router(images_router)
    app.include_router(gallery_router)
    app.include_router(bundle_router)
    app.include_router(health_router)
    return app


app = create_app()
