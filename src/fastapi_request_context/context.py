"""RequestContext — per-request glue between Starlette and controller code."""

from __future__ import annotations

import io
import logging
import re
import threading
from collections.abc import AsyncIterator
from typing import TypeVar

from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import get_route_path

from fastapi_request_context.async_dispatch import (
    AsyncDispatchStrategy,
    AsyncStrategyFactory,
    DispatchState,
    EventDispatchStrategyFactory,
)
from fastapi_request_context.bodyparsers import (
    APPLICATION_FORM,
    APPLICATION_JSON,
    MULTIPART_FORM,
    BodyParserRegistry,
)
from fastapi_request_context.config import ContextConfig
from fastapi_request_context.cookies import CookieConverter
from fastapi_request_context.exceptions import ContextUsageError
from fastapi_request_context.result import Result
from fastapi_request_context.routing import RouteMetadata
from fastapi_request_context.session import FlashState, SessionState

T = TypeVar("T")

logger = logging.getLogger(__name__)

_ACCEPT_TYPES = ("text/html", "application/json", "application/xml", "text/plain")
_FORM_TYPES = (APPLICATION_FORM, MULTIPART_FORM)

_INTEGER = re.compile(r"[+-]?[0-9]+")
_INT_MIN, _INT_MAX = -(2**31), 2**31 - 1


def _to_int(value: str | None) -> int | None:
    # signed 32-bit decimal only; "1_000", " 7" and overflow are absent
    if value is None or _INTEGER.fullmatch(value) is None:
        return None
    number = int(value)
    if not _INT_MIN <= number <= _INT_MAX:
        return None
    return number


class RequestContext:
    """Mediates a single request's lifecycle.

    The transport calls :meth:`init`, sets the route, runs the controller,
    checks :meth:`controller_returned` and finally calls
    :meth:`finalize_headers` before writing the body. Instances are never
    reused across requests.
    """

    def __init__(
        self,
        *,
        flash: FlashState,
        session: SessionState,
        body_parsers: BodyParserRegistry | None = None,
        strategy_factory: AsyncStrategyFactory | None = None,
        config: ContextConfig | None = None,
        cookie_converter: CookieConverter | None = None,
    ) -> None:
        self.flash = flash
        self.session = session
        self.config = config or ContextConfig()
        self.cookie_converter = cookie_converter or CookieConverter()
        self.content_type: str | None = None

        self._body_parsers = body_parsers or BodyParserRegistry.default()
        self._strategy_factory: AsyncStrategyFactory = (
            strategy_factory or EventDispatchStrategyFactory()
        )
        self._request: Request | None = None
        self._response: Response | None = None
        self._route: RouteMetadata | None = None
        self._template_override: str | None = None
        self._finalized = False
        self._output: io.BytesIO | None = None
        self._writer: io.TextIOWrapper | None = None
        self._form_params: list[tuple[str, str]] | None = None

        self._async_strategy: AsyncDispatchStrategy | None = None
        self._async_delivered = False
        self._async_lock = threading.Lock()

    # -- lifecycle --

    def init(self, request: Request, response: Response) -> None:
        if self._request is not None:
            raise ContextUsageError("Context already initialized", operation="init")
        self._request = request
        self._response = response
        self.flash.init(self)
        self.session.init(self)

    @property
    def request(self) -> Request:
        if self._request is None:
            raise ContextUsageError("Context not initialized", operation="request")
        return self._request

    @property
    def response(self) -> Response:
        if self._response is None:
            raise ContextUsageError("Context not initialized", operation="response")
        return self._response

    @property
    def route(self) -> RouteMetadata:
        if self._route is None:
            raise ContextUsageError("No route bound to context", operation="route")
        return self._route

    @route.setter
    def route(self, route: RouteMetadata) -> None:
        if self._route is not None:
            raise ContextUsageError("Route already bound", operation="route")
        self._route = route

    @property
    def finalized(self) -> bool:
        return self._finalized

    # -- request accessors --

    def path_parameter(self, key: str) -> str | None:
        return self.route.parameters(self.route_path()).get(key)

    def path_parameter_as_int(self, key: str) -> int | None:
        return _to_int(self.path_parameter(key))

    def query_parameter(self, key: str, default: str | None = None) -> str | None:
        """Query string value, falling back to a loaded form field."""
        value = self.request.query_params.get(key)
        if value is None and self._form_params:
            value = next((v for k, v in reversed(self._form_params) if k == key), None)
        return default if value is None else value

    def query_parameter_as_int(self, key: str, default: int | None = None) -> int | None:
        value = _to_int(self.query_parameter(key))
        return default if value is None else value

    def all_parameters(self) -> dict[str, list[str]]:
        merged: dict[str, list[str]] = {}
        for key, value in self.request.query_params.multi_items():
            merged.setdefault(key, []).append(value)
        for key, value in self._form_params or ():
            merged.setdefault(key, []).append(value)
        return merged

    async def load_form(self) -> None:
        """Expose urlencoded or multipart form fields as parameters.

        The raw body is buffered first so :meth:`parse_body` and :meth:`body`
        keep working afterwards. File uploads are not parameters.
        """
        if self._form_params is not None:
            return
        media_type = (self.content_type_header() or "").split(";", 1)[0].strip().lower()
        if media_type not in _FORM_TYPES:
            self._form_params = []
            return
        await self.request.body()
        form = await self.request.form()
        self._form_params = [
            (key, value) for key, value in form.multi_items() if isinstance(value, str)
        ]

    def header(self, name: str) -> str | None:
        return self.request.headers.get(name)

    def all_headers(self) -> dict[str, str]:
        # multi-valued headers collapse to the last value
        return dict(self.request.headers.items())

    def cookie_value(self, name: str) -> str | None:
        return self.cookie_converter.read(name, self.request.cookies)

    def route_path(self) -> str:
        """Request path relative to the mount point and ``root_path``."""
        return get_route_path(self.request.scope)

    def request_uri(self) -> str:
        return self.request.url.path

    def method(self) -> str:
        return self.request.method

    def content_type_header(self) -> str | None:
        return self.header("content-type")

    def accept_content_type(self) -> str:
        """Coarse ``Accept`` negotiation used to pick a response format."""
        accept = (self.header("accept") or "").lower()
        for content_type in _ACCEPT_TYPES:
            if content_type in accept:
                return content_type
        return self.config.default_content_type

    # -- templates --

    def set_template_override(self, template_name: str) -> None:
        if self._template_override is not None:
            raise ContextUsageError(
                "Template override already set", operation="set_template_override"
            )
        self._template_override = template_name

    def template_name(self, suffix: str) -> str:
        if self._template_override is not None:
            return self._template_override
        return self.route.template_location.render(suffix)

    # -- body --

    async def parse_body(self, target_type: type[T]) -> T | None:
        parser = self._body_parsers.parser_for(APPLICATION_JSON)
        if parser is None:
            return None
        return await parser.parse(self, target_type)

    async def body(self) -> bytes:
        return await self.request.body()

    async def text(self, encoding: str = "utf-8") -> str:
        return (await self.body()).decode(encoding)

    def stream(self) -> AsyncIterator[bytes]:
        return self.request.stream()

    def output_stream(self) -> io.BytesIO:
        if self._output is None:
            self._output = io.BytesIO()
        return self._output

    def writer(self) -> io.TextIOWrapper:
        if self._writer is None:
            self._writer = io.TextIOWrapper(
                self.output_stream(), encoding="utf-8", write_through=True
            )
        return self._writer

    def written_body(self) -> bytes:
        if self._output is None:
            return b""
        return self._output.getvalue()

    # -- async dispatch --

    def handle_async(self) -> None:
        request = self.request
        with self._async_lock:
            self._engage(request)

    def return_result_async(self, result: Result) -> None:
        request = self.request
        with self._async_lock:
            strategy = self._engage(request)
            strategy.deliver(result)
            self._async_delivered = True

    def controller_returned(self) -> Result | None:
        if self._request is None:
            raise ContextUsageError(
                "Context not initialized", operation="controller_returned"
            )
        with self._async_lock:
            if self._async_strategy is None:
                return None
            return self._async_strategy.pending_result()

    @property
    def async_strategy(self) -> AsyncDispatchStrategy | None:
        with self._async_lock:
            return self._async_strategy

    @property
    def dispatch_state(self) -> DispatchState:
        with self._async_lock:
            if self._async_strategy is None:
                return DispatchState.SYNCHRONOUS
            if self._async_delivered:
                return DispatchState.DELIVERED
            return DispatchState.ENGAGED

    def _engage(self, request: Request) -> AsyncDispatchStrategy:
        # caller holds _async_lock
        if self._async_strategy is None:
            strategy = self._strategy_factory.create(request)
            strategy.engage()
            self._async_strategy = strategy
        return self._async_strategy

    # -- finalization --

    def finalize_headers(self, result: Result | None) -> None:
        if result is None:
            raise ContextUsageError(
                "finalize_headers requires a result", operation="finalize_headers"
            )
        if self._finalized:
            raise ContextUsageError(
                "Headers already finalized", operation="finalize_headers"
            )
        response = self.response
        content_type = self.content_type or result.content_type
        if content_type is not None:
            response.headers["content-type"] = content_type
        response.status_code = result.status_code
        for name, value in result.headers:
            response.headers.append(name, value)

        self.flash.save(self)
        self.session.save(self)

        for cookie in result.cookies:
            response.set_cookie(**self.cookie_converter.to_transport_cookie(cookie))
        self._finalized = True
        logger.debug(
            "Finalized headers for %s with status %d",
            self.request_uri(),
            result.status_code,
        )
