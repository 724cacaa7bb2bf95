"""Subscription gate: token check, quota check, then relay to the upstream.

Every request under the short-link prefix passes through here exactly once.
The limiter is consulted only after a non-empty token has been extracted,
so malformed links never touch quota state.
"""
import enum
import logging
from dataclasses import dataclass

from fastapi import APIRouter, Request, status
from fastapi.responses import PlainTextResponse, Response

from app.rate_limiter import TokenLimiter
from app.tokens import extract_token
from app.upstream import UpstreamProxy

logger = logging.getLogger(__name__)

INVALID_LINK_MESSAGE = "invalid subscription link\n"
LIMIT_EXCEEDED_MESSAGE = "subscription update limit exceeded\n"


class Outcome(enum.Enum):
    NO_TOKEN = "no_token"
    OVER_QUOTA = "over_quota"
    ADMIT = "admit"


@dataclass(frozen=True)
class Admission:
    outcome: Outcome
    token: str = ""
    count: int = 0


class Gate:
    def __init__(self, prefix: str, limiter: TokenLimiter, proxy: UpstreamProxy) -> None:
        self.prefix = prefix
        self.limiter = limiter
        self.proxy = proxy

    def admit(self, path: str) -> Admission:
        """Decide the fate of a request for ``path``. Counts against the quota."""
        token = extract_token(path, self.prefix)
        if not token:
            return Admission(Outcome.NO_TOKEN)

        allowed, count = self.limiter.allow(token)
        if not allowed:
            logger.warning("Subscription link %s over limit (%d)", token, count)
            return Admission(Outcome.OVER_QUOTA, token, count)

        logger.info("Subscription link %s allowed, count=%d", token, count)
        return Admission(Outcome.ADMIT, token, count)

    async def handle(self, request: Request) -> Response:
        decision = self.admit(request.url.path)
        if decision.outcome is Outcome.NO_TOKEN:
            return PlainTextResponse(INVALID_LINK_MESSAGE, status_code=status.HTTP_400_BAD_REQUEST)
        if decision.outcome is Outcome.OVER_QUOTA:
            return PlainTextResponse(LIMIT_EXCEEDED_MESSAGE, status_code=status.HTTP_429_TOO_MANY_REQUESTS)
        return await self.proxy.forward(request)


def build_router(gate: Gate) -> APIRouter:
    """Mount ``gate`` on every path under its prefix, for any HTTP method."""
    router = APIRouter()

    async def subscription_gate(request: Request) -> Response:
        return await gate.handle(request)

    # A plain route with no method list matches every verb, WebDAV and custom ones included
    router.add_route(
        gate.prefix.rstrip("/") + "/{rest:path}",
        subscription_gate,
        include_in_schema=False,
    )
    return router
