"""Shared fixtures for the SubGate test suite.

SUBGATE_CONFIG MUST be set before any app imports because
app.config.Settings() evaluates at import time.
"""
import os

# Point the settings loader at the test config before any app module is imported
os.environ.setdefault(
    "SUBGATE_CONFIG", os.path.join(os.path.dirname(__file__), "config.test.yaml")
)

import httpx
import pytest
import pytest_asyncio

from app.config import Settings

UPSTREAM_URL = "http://upstream.test"
SUBSCRIPTION_BODY = b"subscription-body"


@pytest.fixture
def upstream_requests():
    """Requests received by the fake upstream, in arrival order."""
    return []


@pytest.fixture
def upstream_transport(upstream_requests):
    """Replace the subscription backend.

    Only the network hop to the upstream is faked — routing, token
    extraction, the limiter and the relay code are all real. Bodies are
    served as unread streams, the way a real connection delivers them.
    """
    def handler(request: httpx.Request) -> httpx.Response:
        upstream_requests.append(request)
        return httpx.Response(
            200,
            headers={
                "Content-Type": "text/plain",
                "Content-Length": str(len(SUBSCRIPTION_BODY)),
                "Subscription-Userinfo": "upload=0; download=0",
            },
            stream=httpx.ByteStream(SUBSCRIPTION_BODY),
        )

    return httpx.MockTransport(handler)


@pytest.fixture
def make_settings():
    def _make(**limit):
        return Settings(
            upstream={"url": UPSTREAM_URL},
            path={"short_prefix": "/s/"},
            limit=limit or {"max": 1, "window": "1h"},
        )
    return _make


@pytest.fixture
def gate_app(make_settings, upstream_transport):
    """App with max=1 per 1h window and a fake upstream."""
    from main import create_app

    return create_app(make_settings(), transport=upstream_transport)


@pytest_asyncio.fixture
async def client(gate_app):
    """httpx.AsyncClient using ASGITransport — bypasses lifespan."""
    transport = httpx.ASGITransport(app=gate_app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
    await gate_app.state.proxy.aclose()
