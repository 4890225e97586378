"""ContextConfig — settings shared by every context of an application."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ContextConfig:
    """Immutable settings injected into each RequestContext."""

    cookie_prefix: str = "APP"
    session_expire_seconds: int = 3600
    session_https_only: bool = False
    session_http_only: bool = True
    cookie_domain: str | None = None
    cookie_path: str = "/"
    controllers_segment: str = "controllers"
    default_content_type: str = "text/html"

    @property
    def session_cookie_name(self) -> str:
        return f"{self.cookie_prefix}_SESSION"

    @property
    def flash_cookie_name(self) -> str:
        return f"{self.cookie_prefix}_FLASH"
