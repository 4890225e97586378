"""RouteMetadata and TemplateLocation — resolved, immutable route description."""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field

# {name} matches one path segment, {name: regex} a custom expression
_PLACEHOLDER = re.compile(r"\{(\w+)(?:\s*:\s*([^{}]*(?:\{[^{}]*\}[^{}]*)*))?\}")


@dataclass(frozen=True)
class TemplateLocation:
    """Template lookup coordinates derived once from controller identity."""

    parent_path: str
    controller_name: str
    method_name: str

    @classmethod
    def from_package(
        cls,
        package: str,
        controller_name: str,
        method_name: str,
        *,
        controllers_segment: str = "controllers",
    ) -> TemplateLocation:
        # Plain substring removal: "controllers.admin" becomes ".admin"
        parent = package.replace(controllers_segment, "")
        return cls(
            parent_path=parent.replace(".", "/"),
            controller_name=controller_name,
            method_name=method_name,
        )

    def render(self, suffix: str) -> str:
        return (
            f"{self.parent_path}views/{self.controller_name}/"
            f"{self.method_name}{suffix}"
        )


def compile_path(pattern: str) -> tuple[re.Pattern[str], tuple[str, ...]]:
    """Compile a route pattern into an anchored regex and its parameter names."""
    names: list[str] = []
    parts: list[str] = []
    pos = 0
    for match in _PLACEHOLDER.finditer(pattern):
        parts.append(re.escape(pattern[pos : match.start()]))
        name, custom = match.group(1), match.group(2)
        if name in names:
            raise ValueError(f"Duplicate path parameter {name!r} in {pattern!r}")
        names.append(name)
        expr = custom.strip() if custom else "[^/]+"
        parts.append(f"(?P<{name}>{expr})")
        pos = match.end()
    parts.append(re.escape(pattern[pos:]))
    return re.compile("^" + "".join(parts) + "$"), tuple(names)


@dataclass(frozen=True)
class RouteMetadata:
    """Matched route: controller identity plus path-parameter pattern."""

    path_pattern: str
    controller_package: str
    controller_name: str
    method_name: str
    http_methods: tuple[str, ...] = ("GET",)
    controllers_segment: str = "controllers"
    template_location: TemplateLocation = field(init=False, repr=False)
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)
    parameter_names: tuple[str, ...] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        regex, names = compile_path(self.path_pattern)
        object.__setattr__(self, "_regex", regex)
        object.__setattr__(self, "parameter_names", names)
        object.__setattr__(
            self,
            "template_location",
            TemplateLocation.from_package(
                self.controller_package,
                self.controller_name,
                self.method_name,
                controllers_segment=self.controllers_segment,
            ),
        )

    @classmethod
    def for_controller(
        cls,
        controller: type,
        method_name: str,
        path_pattern: str,
        *,
        http_methods: tuple[str, ...] = ("GET",),
        controllers_segment: str = "controllers",
    ) -> RouteMetadata:
        if not callable(getattr(controller, method_name, None)):
            raise ValueError(
                f"{controller.__name__} has no controller method {method_name!r}"
            )
        return cls(
            path_pattern=path_pattern,
            controller_package=_declaring_package(controller),
            controller_name=controller.__name__,
            method_name=method_name,
            http_methods=tuple(m.upper() for m in http_methods),
            controllers_segment=controllers_segment,
        )

    def matches(self, path: str) -> bool:
        return self._regex.match(path) is not None

    def parameters(self, path: str) -> dict[str, str]:
        match = self._regex.match(path)
        if match is None:
            return {}
        return match.groupdict()


def _declaring_package(controller: type) -> str:
    module = sys.modules.get(controller.__module__)
    package = getattr(module, "__package__", None)
    if package is not None:
        return package
    return controller.__module__.rpartition(".")[0]


def starlette_path(pattern: str) -> str:
    """Translate ``{name: regex}`` placeholders into Starlette path syntax.

    Custom expressions widen to ``{name:path}``; the exact pattern is
    re-checked with :meth:`RouteMetadata.matches` at dispatch time.
    """

    def _convert(match: re.Match[str]) -> str:
        name, custom = match.group(1), match.group(2)
        return f"{{{name}:path}}" if custom else f"{{{name}}}"

    return _PLACEHOLDER.sub(_convert, pattern)
