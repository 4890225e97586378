"""Cookie value object and CookieConverter."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal


@dataclass(frozen=True)
class Cookie:
    """Framework-level outbound cookie."""

    name: str
    value: str
    max_age: int | None = None
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    http_only: bool = False
    same_site: Literal["lax", "strict", "none"] | None = "lax"

    @classmethod
    def expired(cls, name: str, *, path: str = "/", domain: str | None = None) -> Cookie:
        """Cookie instructing the client to drop ``name``."""
        return cls(name=name, value="", max_age=0, path=path, domain=domain)


class CookieConverter:
    """Translates between framework cookies and Starlette's cookie surface."""

    @staticmethod
    def read(name: str, inbound_cookies: Mapping[str, str] | None) -> str | None:
        if not inbound_cookies:
            return None
        return inbound_cookies.get(name)

    @staticmethod
    def to_transport_cookie(cookie: Cookie) -> dict[str, Any]:
        """Keyword arguments for ``starlette.responses.Response.set_cookie``."""
        return {
            "key": cookie.name,
            "value": cookie.value,
            "max_age": cookie.max_age,
            "path": cookie.path,
            "domain": cookie.domain,
            "secure": cookie.secure,
            "httponly": cookie.http_only,
            "samesite": cookie.same_site,
        }
