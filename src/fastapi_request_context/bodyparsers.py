"""Body parsers — BodyParser protocol, JSON/form parsers, BodyParserRegistry."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, TypeVar, runtime_checkable

from pydantic import TypeAdapter

if TYPE_CHECKING:
    from fastapi_request_context.context import RequestContext

T = TypeVar("T")

APPLICATION_JSON = "application/json"
APPLICATION_FORM = "application/x-www-form-urlencoded"
MULTIPART_FORM = "multipart/form-data"


@runtime_checkable
class BodyParser(Protocol):
    """Decodes a raw request body into ``target_type``. May raise."""

    async def parse(self, ctx: RequestContext, target_type: type[T]) -> T: ...


class JsonBodyParser:
    """Validates the raw body as JSON against ``target_type`` with pydantic."""

    async def parse(self, ctx: RequestContext, target_type: type[T]) -> T:
        raw = await ctx.body()
        return TypeAdapter(target_type).validate_json(raw)


class FormBodyParser:
    """Validates submitted form fields against ``target_type``.

    Repeated fields keep only their last value.
    """

    async def parse(self, ctx: RequestContext, target_type: type[T]) -> T:
        form = await ctx.request.form()
        fields: dict[str, Any] = {key: value for key, value in form.items()}
        return TypeAdapter(target_type).validate_python(fields)


def _media_type(content_type: str) -> str:
    return content_type.split(";", 1)[0].strip().lower()


class BodyParserRegistry:
    """Maps media types to body parsers."""

    def __init__(self, parsers: dict[str, BodyParser] | None = None) -> None:
        self._parsers: dict[str, BodyParser] = {}
        for content_type, parser in (parsers or {}).items():
            self.register(content_type, parser)

    @classmethod
    def default(cls) -> BodyParserRegistry:
        form = FormBodyParser()
        return cls(
            {
                APPLICATION_JSON: JsonBodyParser(),
                APPLICATION_FORM: form,
                MULTIPART_FORM: form,
            }
        )

    def register(self, content_type: str, parser: BodyParser) -> BodyParserRegistry:
        self._parsers[_media_type(content_type)] = parser
        return self

    def parser_for(self, content_type: str) -> BodyParser | None:
        return self._parsers.get(_media_type(content_type))

    def content_types(self) -> tuple[str, ...]:
        return tuple(self._parsers)
