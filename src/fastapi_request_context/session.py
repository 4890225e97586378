"""SessionState and FlashState — cookie-backed per-request key/value scopes.

Both follow a two-call contract driven by :class:`RequestContext`:

* ``init(ctx)`` hydrates the scope from the inbound cookie, exactly once,
  before any controller code runs.
* ``save(ctx)`` serializes the scope to an outbound cookie, exactly once,
  from ``finalize_headers``.

Values are stored ``application/x-www-form-urlencoded``. Signing is left to
the deployment (e.g. a reverse proxy or a signing middleware).
"""

from __future__ import annotations

import logging
import secrets
import time
from abc import ABC, abstractmethod
from collections.abc import Iterator
from typing import TYPE_CHECKING
from urllib.parse import parse_qsl, urlencode

from fastapi_request_context.config import ContextConfig
from fastapi_request_context.cookies import Cookie
from fastapi_request_context.exceptions import ContextUsageError

if TYPE_CHECKING:
    from fastapi_request_context.context import RequestContext

logger = logging.getLogger(__name__)

TIMESTAMP_KEY = "___TS"
AUTHENTICITY_KEY = "___AT"


def _decode(raw: str, cookie_name: str) -> dict[str, str]:
    try:
        return dict(parse_qsl(raw, keep_blank_values=True, strict_parsing=True))
    except ValueError:
        logger.warning("Ignoring malformed %s cookie", cookie_name)
        return {}


class _CookieScope(ABC):
    """Shared init/save bookkeeping for session and flash scopes."""

    def __init__(self, config: ContextConfig | None = None) -> None:
        self._config = config or ContextConfig()
        self._initialized = False
        self._saved = False
        self._inbound_present = False

    @property
    @abstractmethod
    def cookie_name(self) -> str: ...

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def saved(self) -> bool:
        return self._saved

    def init(self, ctx: RequestContext) -> None:
        if self._initialized:
            raise ContextUsageError(
                f"{type(self).__name__} already initialized", operation="init"
            )
        raw = ctx.cookie_value(self.cookie_name)
        self._inbound_present = raw is not None
        self._load(_decode(raw, self.cookie_name) if raw else {})
        self._initialized = True

    def save(self, ctx: RequestContext) -> None:
        if not self._initialized:
            raise ContextUsageError(
                f"{type(self).__name__} saved before init", operation="save"
            )
        if self._saved:
            raise ContextUsageError(
                f"{type(self).__name__} already saved", operation="save"
            )
        cookie = self._outbound_cookie()
        if cookie is not None:
            ctx.response.set_cookie(**ctx.cookie_converter.to_transport_cookie(cookie))
        self._saved = True

    def _cookie(self, value: str, max_age: int | None) -> Cookie:
        return Cookie(
            name=self.cookie_name,
            value=value,
            max_age=max_age,
            path=self._config.cookie_path,
            domain=self._config.cookie_domain,
            secure=self._config.session_https_only,
            http_only=self._config.session_http_only,
        )

    def _expired_cookie(self) -> Cookie:
        return Cookie.expired(
            self.cookie_name,
            path=self._config.cookie_path,
            domain=self._config.cookie_domain,
        )

    @abstractmethod
    def _load(self, data: dict[str, str]) -> None: ...

    @abstractmethod
    def _outbound_cookie(self) -> Cookie | None: ...


class SessionState(_CookieScope):
    """Longer-lived key/value store, expiring after ``session_expire_seconds``."""

    def __init__(self, config: ContextConfig | None = None) -> None:
        super().__init__(config)
        self._data: dict[str, str] = {}

    @property
    def cookie_name(self) -> str:
        return self._config.session_cookie_name

    def _load(self, data: dict[str, str]) -> None:
        stamp = data.pop(TIMESTAMP_KEY, None)
        if stamp is not None and self._expired(stamp):
            logger.debug("Discarding expired session cookie")
            data = {}
        self._data = data

    def _expired(self, stamp: str) -> bool:
        try:
            issued_ms = int(stamp)
        except ValueError:
            return True
        age_ms = int(time.time() * 1000) - issued_ms
        return age_ms > self._config.session_expire_seconds * 1000

    def _outbound_cookie(self) -> Cookie | None:
        if not self._data:
            return self._expired_cookie() if self._inbound_present else None
        payload = dict(self._data)
        payload[TIMESTAMP_KEY] = str(int(time.time() * 1000))
        return self._cookie(urlencode(payload), self._config.session_expire_seconds)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._data.get(key, default)

    def put(self, key: str, value: str) -> None:
        if key == TIMESTAMP_KEY:
            raise ValueError(f"{TIMESTAMP_KEY!r} is a reserved session key")
        self._data[key] = value

    def remove(self, key: str) -> str | None:
        return self._data.pop(key, None)

    def clear(self) -> None:
        self._data.clear()

    def is_empty(self) -> bool:
        return not self._data

    def authenticity_token(self) -> str:
        """Per-session anti-forgery token, created on first use."""
        token = self._data.get(AUTHENTICITY_KEY)
        if token is None:
            token = secrets.token_urlsafe(24)
            self._data[AUTHENTICITY_KEY] = token
        return token

    @property
    def data(self) -> dict[str, str]:
        return dict(self._data)

    def __contains__(self, key: object) -> bool:
        return key in self._data

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)


class FlashState(_CookieScope):
    """Single-hop messages: read from this request, written for the next one."""

    def __init__(self, config: ContextConfig | None = None) -> None:
        super().__init__(config)
        self._current: dict[str, str] = {}
        self._outgoing: dict[str, str] = {}

    @property
    def cookie_name(self) -> str:
        return self._config.flash_cookie_name

    def _load(self, data: dict[str, str]) -> None:
        self._current = data

    def _outbound_cookie(self) -> Cookie | None:
        if not self._outgoing:
            return self._expired_cookie() if self._inbound_present else None
        return self._cookie(urlencode(self._outgoing), None)

    def get(self, key: str, default: str | None = None) -> str | None:
        return self._current.get(key, default)

    def put(self, key: str, value: str) -> None:
        self._outgoing[key] = value

    def now(self, key: str, value: str) -> None:
        """Make ``value`` visible during this request only."""
        self._current[key] = value

    def success(self, message: str) -> None:
        self.put("success", message)

    def error(self, message: str) -> None:
        self.put("error", message)

    def discard(self, key: str | None = None) -> None:
        """Drop outgoing values (all of them when ``key`` is None)."""
        if key is None:
            self._outgoing.clear()
        else:
            self._outgoing.pop(key, None)

    def keep(self, key: str | None = None) -> None:
        """Carry current values over to the next request."""
        if key is None:
            self._outgoing.update(self._current)
        elif key in self._current:
            self._outgoing[key] = self._current[key]

    def clear_current(self) -> None:
        self._current.clear()

    @property
    def data(self) -> dict[str, str]:
        return dict(self._current)

    @property
    def outgoing(self) -> dict[str, str]:
        return dict(self._outgoing)
