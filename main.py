"""SubGate — FastAPI entry point."""
import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from app.config import Settings, settings
from app.rate_limiter import TokenLimiter
from app.routers.gate import Gate, build_router
from app.upstream import UpstreamProxy

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    cfg: Settings = app.state.settings
    logger.info(
        "Listening on %s, proxying to %s, prefix=%s, max=%d, window=%s",
        cfg.server.listen, cfg.upstream.url, cfg.path.short_prefix, cfg.limit.max, cfg.limit.window,
    )

    yield

    try:
        await app.state.proxy.aclose()
    except Exception:
        logger.exception("Error closing upstream client")


def create_app(
    cfg: Settings = settings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> FastAPI:
    """Build the app with its own limiter and upstream client.

    ``transport`` replaces the network transport of the upstream client.
    """
    app = FastAPI(
        title="SubGate",
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    limiter = TokenLimiter(cfg.limit.max, cfg.limit.window)
    proxy = UpstreamProxy(cfg.upstream.url, timeout=cfg.upstream.timeout, transport=transport)
    gate = Gate(cfg.path.short_prefix, limiter, proxy)

    app.state.settings = cfg
    app.state.limiter = limiter
    app.state.proxy = proxy
    app.state.gate = gate

    # Registered before the gate so a catch-all "/" prefix cannot shadow it
    @app.get("/healthz", response_class=PlainTextResponse)
    async def healthz():
        return "ok"

    app.include_router(build_router(gate))
    return app


app = create_app()
