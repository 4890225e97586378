"""Shared pytest fixtures for fastapi-request-context tests."""

from __future__ import annotations

from typing import Any

import pytest
from starlette.requests import Request
from starlette.responses import Response

from fastapi_request_context.config import ContextConfig
from fastapi_request_context.context import RequestContext
from fastapi_request_context.routing import RouteMetadata
from fastapi_request_context.session import FlashState, SessionState


@pytest.fixture
def make_request() -> Any:
    """Factory for creating Starlette Request objects from raw ASGI scopes."""

    def _make(
        method: str = "GET",
        path: str = "/",
        headers: dict[str, str] | list[tuple[str, str]] | None = None,
        query_string: str = "",
        body: bytes = b"",
        root_path: str = "",
    ) -> Request:
        pairs = headers.items() if isinstance(headers, dict) else (headers or [])
        scope: dict[str, Any] = {
            "type": "http",
            "method": method,
            "path": path,
            "query_string": query_string.encode(),
            "headers": [(k.lower().encode(), v.encode()) for k, v in pairs],
            "root_path": root_path,
        }
        sent = False

        async def receive() -> dict[str, Any]:
            nonlocal sent
            if sent:
                return {"type": "http.disconnect"}
            sent = True
            return {"type": "http.request", "body": body, "more_body": False}

        return Request(scope, receive)

    return _make


@pytest.fixture
def user_route() -> RouteMetadata:
    return RouteMetadata(
        path_pattern="/users/{id}",
        controller_package="controllers",
        controller_name="UserController",
        method_name="show",
    )


@pytest.fixture
def make_context(make_request: Any, user_route: RouteMetadata) -> Any:
    """Factory for initialized RequestContext objects bound to ``user_route``."""

    def _make(
        *,
        route: RouteMetadata | None = None,
        config: ContextConfig | None = None,
        **request_kwargs: Any,
    ) -> RequestContext:
        request_kwargs.setdefault("path", "/users/42")
        cfg = config or ContextConfig()
        ctx = RequestContext(
            flash=FlashState(cfg), session=SessionState(cfg), config=cfg
        )
        ctx.init(make_request(**request_kwargs), Response())
        ctx.route = route or user_route
        return ctx

    return _make


@pytest.fixture
def set_cookies() -> Any:
    """Extract Set-Cookie header values from a Starlette Response, in order."""

    def _extract(response: Response) -> list[str]:
        return [
            value.decode("latin-1")
            for key, value in response.raw_headers
            if key == b"set-cookie"
        ]

    return _extract
