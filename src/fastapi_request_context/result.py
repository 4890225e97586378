"""Result — immutable controller outcome."""

from __future__ import annotations

from dataclasses import dataclass, replace

from fastapi_request_context.cookies import Cookie


@dataclass(frozen=True)
class Result:
    """Status, content type, ordered cookies and an optional raw payload.

    ``body`` is written verbatim by the endpoint adapter; when it is ``None``
    whatever the controller wrote to the context's output stream is sent.
    """

    status_code: int = 200
    content_type: str | None = None
    cookies: tuple[Cookie, ...] = ()
    headers: tuple[tuple[str, str], ...] = ()
    body: bytes | None = None

    def with_cookie(self, cookie: Cookie) -> Result:
        return replace(self, cookies=(*self.cookies, cookie))

    def with_header(self, name: str, value: str) -> Result:
        return replace(self, headers=(*self.headers, (name, value)))

    @classmethod
    def ok(
        cls,
        body: bytes | str | None = None,
        *,
        content_type: str | None = None,
    ) -> Result:
        if isinstance(body, str):
            body = body.encode("utf-8")
        return cls(status_code=200, content_type=content_type, body=body)

    @classmethod
    def no_content(cls) -> Result:
        return cls(status_code=204)

    @classmethod
    def redirect(cls, location: str, *, status_code: int = 303) -> Result:
        return cls(status_code=status_code, headers=(("location", location),))
