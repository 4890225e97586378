"""Shared type aliases."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Union

from fastapi_request_context.context import RequestContext
from fastapi_request_context.result import Result

# Controller methods may be sync (run in the threadpool) or async
Controller = Callable[
    [RequestContext], Union[Result, None, Awaitable[Union[Result, None]]]
]
