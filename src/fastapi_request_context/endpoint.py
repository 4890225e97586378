"""controller_route() — Starlette endpoints driving a RequestContext lifecycle."""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from starlette.concurrency import run_in_threadpool
from starlette.exceptions import HTTPException
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Route, get_route_path

from fastapi_request_context._types import Controller
from fastapi_request_context.async_dispatch import (
    AsyncStrategyFactory,
    EventDispatchStrategyFactory,
)
from fastapi_request_context.bodyparsers import BodyParserRegistry
from fastapi_request_context.config import ContextConfig
from fastapi_request_context.context import RequestContext
from fastapi_request_context.exceptions import ContextUsageError
from fastapi_request_context.result import Result
from fastapi_request_context.routing import RouteMetadata, starlette_path
from fastapi_request_context.session import FlashState, SessionState

logger = logging.getLogger(__name__)

_BODYLESS_STATUS = frozenset({204, 304})


@dataclass(frozen=True)
class ContextDependencies:
    """Process-wide collaborators shared by every request context."""

    config: ContextConfig = field(default_factory=ContextConfig)
    body_parsers: BodyParserRegistry = field(default_factory=BodyParserRegistry.default)
    strategy_factory: AsyncStrategyFactory = field(
        default_factory=EventDispatchStrategyFactory
    )

    def new_context(self) -> RequestContext:
        return RequestContext(
            flash=FlashState(self.config),
            session=SessionState(self.config),
            body_parsers=self.body_parsers,
            strategy_factory=self.strategy_factory,
            config=self.config,
        )


def controller_endpoint(
    handler: Controller,
    route: RouteMetadata,
    dependencies: ContextDependencies | None = None,
) -> Callable[[Request], Awaitable[Response]]:
    """Return a Starlette endpoint running ``handler`` inside a RequestContext."""
    deps = dependencies or ContextDependencies()
    is_async = inspect.iscoroutinefunction(handler)

    async def endpoint(request: Request) -> Response:
        if not route.matches(get_route_path(request.scope)):
            raise HTTPException(status_code=404)

        ctx = deps.new_context()
        response = Response()
        ctx.init(request, response)
        ctx.route = route
        await ctx.load_form()

        if is_async:
            returned = await handler(ctx)
        else:
            returned = await run_in_threadpool(handler, ctx)

        result = ctx.controller_returned()
        if result is None:
            strategy = ctx.async_strategy
            if strategy is not None:
                logger.debug("Awaiting async result for %s", ctx.request_uri())
                result = await strategy.wait()
            else:
                result = returned
        if not isinstance(result, Result):
            raise ContextUsageError(
                f"{route.controller_name}.{route.method_name} returned "
                f"{type(result).__name__}, expected Result",
                operation="controller",
            )

        if ctx.content_type is None:
            ctx.content_type = result.content_type or ctx.accept_content_type()
        ctx.finalize_headers(result)
        _write_body(response, result, ctx)
        return response

    endpoint.route_metadata = route  # type: ignore[attr-defined]
    return endpoint


def _write_body(response: Response, result: Result, ctx: RequestContext) -> None:
    if result.status_code in _BODYLESS_STATUS or result.status_code < 200:
        del response.headers["content-length"]
        response.body = b""
        return
    body = result.body if result.body is not None else ctx.written_body()
    response.body = body
    response.headers["content-length"] = str(len(body))


def controller_route(
    path: str,
    controller: type,
    method_name: str,
    *,
    methods: tuple[str, ...] = ("GET",),
    dependencies: ContextDependencies | None = None,
    name: str | None = None,
) -> Route:
    """Register ``controller.method_name`` at ``path`` as a Starlette route.

    The controller class is instantiated once, here; its method receives the
    RequestContext and returns a Result (or engages async dispatch).
    """
    deps = dependencies or ContextDependencies()
    metadata = RouteMetadata.for_controller(
        controller,
        method_name,
        path,
        http_methods=methods,
        controllers_segment=deps.config.controllers_segment,
    )
    handler: Controller = getattr(controller(), method_name)
    return Route(
        starlette_path(path),
        controller_endpoint(handler, metadata, deps),
        methods=list(metadata.http_methods),
        name=name or f"{controller.__name__}.{method_name}",
    )
