"""Pydantic configuration models."""
import re
from datetime import timedelta
from urllib.parse import urlsplit

from pydantic import BaseModel, Field, field_validator

DEFAULT_SHORT_PREFIX = "/s/"
DEFAULT_LIMIT_MAX = 10
DEFAULT_LIMIT_WINDOW = "24h"

# Go-style duration units, in seconds
_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,  # U+00B5 micro sign
    "μs": 1e-6,  # U+03BC greek mu
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


def parse_duration(value: str) -> timedelta:
    """Parse a duration such as "24h", "1h30m" or "1.5s"."""
    s = value
    sign = 1
    if s[:1] in ("+", "-"):
        sign = -1 if s[0] == "-" else 1
        s = s[1:]
    if s == "0":
        return timedelta(0)
    if not s:
        raise ValueError(f"invalid duration {value!r}")

    total = 0.0
    pos = 0
    while pos < len(s):
        m = _DURATION_PART.match(s, pos)
        if not m:
            raise ValueError(f"invalid duration {value!r}")
        total += float(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    return timedelta(seconds=sign * total)


def split_listen(addr: str) -> tuple[str, int]:
    """Split "host:port" into its parts. An empty host means all interfaces."""
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"listen address must be host:port, got {addr!r}")
    port_num = int(port)
    if port_num > 65535:
        raise ValueError(f"port out of range in {addr!r}")
    host = host.strip("[]") or "0.0.0.0"
    return host, port_num


class ServerConfig(BaseModel):
    listen: str = ":8080"

    @field_validator("listen")
    @classmethod
    def check_listen(cls, v: str) -> str:
        split_listen(v)
        return v

    @property
    def host(self) -> str:
        return split_listen(self.listen)[0]

    @property
    def port(self) -> int:
        return split_listen(self.listen)[1]


class UpstreamConfig(BaseModel):
    url: str = Field(min_length=1, pattern=r"^https?://")
    timeout: float = Field(default=30.0, gt=0)

    @field_validator("url")
    @classmethod
    def check_host(cls, v: str) -> str:
        if not urlsplit(v).netloc:
            raise ValueError(f"upstream url has no host: {v!r}")
        return v


class PathConfig(BaseModel):
    short_prefix: str = DEFAULT_SHORT_PREFIX

    @field_validator("short_prefix")
    @classmethod
    def normalize_prefix(cls, v: str) -> str:
        if not v:
            return DEFAULT_SHORT_PREFIX
        if not v.endswith("/"):
            v += "/"
        return v


class LimitConfig(BaseModel):
    max: int = DEFAULT_LIMIT_MAX
    window: timedelta = parse_duration(DEFAULT_LIMIT_WINDOW)

    @field_validator("max")
    @classmethod
    def default_max(cls, v: int) -> int:
        return v if v > 0 else DEFAULT_LIMIT_MAX

    @field_validator("window", mode="before")
    @classmethod
    def parse_window(cls, v):
        if isinstance(v, str):
            return parse_duration(v or DEFAULT_LIMIT_WINDOW)
        return v

    @field_validator("window")
    @classmethod
    def positive_window(cls, v: timedelta) -> timedelta:
        if v <= timedelta(0):
            raise ValueError("window must be positive")
        return v
