"""FastAPI Request Context - per-request controller context for Starlette apps."""

from fastapi_request_context.async_dispatch import (
    AsyncDispatchStrategy,
    AsyncStrategyFactory,
    DispatchState,
    EventDispatchStrategy,
    EventDispatchStrategyFactory,
)
from fastapi_request_context.bodyparsers import (
    BodyParser,
    BodyParserRegistry,
    FormBodyParser,
    JsonBodyParser,
)
from fastapi_request_context.config import ContextConfig
from fastapi_request_context.context import RequestContext
from fastapi_request_context.cookies import Cookie, CookieConverter
from fastapi_request_context.endpoint import (
    ContextDependencies,
    controller_endpoint,
    controller_route,
)
from fastapi_request_context.exceptions import (
    AsyncDispatchError,
    ContextError,
    ContextUsageError,
)
from fastapi_request_context.result import Result
from fastapi_request_context.routing import RouteMetadata, TemplateLocation
from fastapi_request_context.session import FlashState, SessionState

__all__ = [
    "AsyncDispatchError",
    "AsyncDispatchStrategy",
    "AsyncStrategyFactory",
    "BodyParser",
    "BodyParserRegistry",
    "ContextConfig",
    "ContextDependencies",
    "ContextError",
    "ContextUsageError",
    "Cookie",
    "CookieConverter",
    "DispatchState",
    "EventDispatchStrategy",
    "EventDispatchStrategyFactory",
    "FlashState",
    "FormBodyParser",
    "JsonBodyParser",
    "RequestContext",
    "Result",
    "RouteMetadata",
    "SessionState",
    "TemplateLocation",
    "controller_endpoint",
    "controller_route",
]
