"""Upstream relay: forwards admitted requests to the subscription backend."""
import logging
from http.cookiejar import CookieJar, DefaultCookiePolicy
from typing import AsyncIterator
from urllib.parse import urlsplit

import httpx
from fastapi import Request, status
from fastapi.responses import Response, StreamingResponse
from starlette.background import BackgroundTask

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Named constants
# ---------------------------------------------------------------------------
HTTP_TIMEOUT = 30

# Connection-scoped headers, never relayed in either direction
HOP_BY_HOP_HEADERS = frozenset({
    b"connection",
    b"keep-alive",
    b"proxy-authenticate",
    b"proxy-authorization",
    b"proxy-connection",
    b"te",
    b"trailer",
    b"transfer-encoding",
    b"upgrade",
})

# httpx adds these to every request; only the client's own values go upstream
_CLIENT_DEFAULT_HEADERS = ("Accept", "Accept-Encoding", "User-Agent")

RawHeaders = list[tuple[bytes, bytes]]


def strip_hop_by_hop(raw: RawHeaders) -> RawHeaders:
    """Drop hop-by-hop headers, including any named in Connection. Names come back lowercased."""
    drop = set(HOP_BY_HOP_HEADERS)
    for name, value in raw:
        if name.lower() == b"connection":
            drop.update(v.strip().lower() for v in value.split(b",") if v.strip())
    return [(name.lower(), value) for name, value in raw if name.lower() not in drop]


def join_path(base: str, path: str) -> str:
    """Join two URL paths with exactly one slash between them."""
    if base.endswith("/") and path.startswith("/"):
        return base + path[1:]
    if not base.endswith("/") and not path.startswith("/"):
        return base + "/" + path
    return base + path


async def relay_body(upstream_resp: httpx.Response) -> AsyncIterator[bytes]:
    """Yield the undecoded upstream body, closing the upstream response however the stream ends."""
    try:
        async for chunk in upstream_resp.aiter_raw():
            yield chunk
    finally:
        await upstream_resp.aclose()


class UpstreamProxy:
    """Single-host reverse proxy over one persistent ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        timeout: float = HTTP_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        parts = urlsplit(base_url)
        self.base_url = base_url
        self._scheme = parts.scheme
        self._netloc = parts.netloc
        self._base_path = parts.path
        self._base_query = parts.query
        # Shared by every subscriber, so the jar must never accept a cookie
        no_cookies = CookieJar(policy=DefaultCookiePolicy(allowed_domains=[]))
        self._client = httpx.AsyncClient(timeout=timeout, transport=transport, cookies=no_cookies)
        for name in _CLIENT_DEFAULT_HEADERS:
            del self._client.headers[name]

    def build_url(self, path: str, query: str) -> str:
        url = f"{self._scheme}://{self._netloc}{join_path(self._base_path, path)}"
        if self._base_query and query:
            query = f"{self._base_query}&{query}"
        else:
            query = self._base_query or query
        return f"{url}?{query}" if query else url

    def _outbound_headers(self, request: Request) -> RawHeaders:
        headers = [
            (name, value)
            for name, value in strip_hop_by_hop(request.headers.raw)
            # Host comes from the upstream URL; length is recomputed from the body
            if name not in (b"host", b"content-length")
        ]
        if request.client:
            prior = [value for name, value in headers if name == b"x-forwarded-for"]
            headers = [(name, value) for name, value in headers if name != b"x-forwarded-for"]
            chain = b", ".join(prior + [request.client.host.encode("latin-1")])
            headers.append((b"x-forwarded-for", chain))
        return headers

    async def forward(self, request: Request) -> Response:
        """Relay ``request`` upstream and stream the upstream response back.

        Transport failures become an empty 502; upstream error statuses are
        relayed unchanged.
        """
        raw_path = request.scope.get("raw_path")
        if raw_path:
            # Some servers include the query string in raw_path
            path = raw_path.split(b"?", 1)[0].decode("latin-1")
        else:
            path = request.url.path
        query = request.scope.get("query_string", b"").decode("latin-1")
        url = self.build_url(path, query)

        body = await request.body()
        upstream_req = self._client.build_request(
            request.method,
            url,
            headers=self._outbound_headers(request),
            content=body,
        )

        try:
            upstream_resp = await self._client.send(upstream_req, stream=True)
        except httpx.HTTPError as exc:
            logger.error("Upstream request %s %s failed: %s", request.method, url, exc)
            return Response(status_code=status.HTTP_502_BAD_GATEWAY)

        response = StreamingResponse(
            relay_body(upstream_resp),
            status_code=upstream_resp.status_code,
            background=BackgroundTask(upstream_resp.aclose),
        )
        # Keep repeated headers such as Set-Cookie intact
        response.raw_headers = strip_hop_by_hop(upstream_resp.headers.raw)
        return response

    async def aclose(self) -> None:
        await self._client.aclose()
