from __future__ import annotations

from typing import Any, Iterable, Tuple

from jinja2 import StrictUndefined, TemplateSyntaxError, Undefined, meta
from jinja2.sandbox import ImmutableSandboxedEnvironment

_ALLOWED_FILTERS = {
    "default",
    "lower",
    "upper",
    "title",
    "trim",
    "replace",
    "length",
}

_ALLOWED_TESTS = {
    "defined",
    "undefined",
    "none",
}


class _LockedSandbox(ImmutableSandboxedEnvironment):
    def is_safe_attribute(self, obj, attr, value) -> bool:
        return False

    def is_safe_callable(self, obj) -> bool:
        return False


def _env(strict: bool) -> _LockedSandbox:
    env = _LockedSandbox(autoescape=False, undefined=StrictUndefined if strict else Undefined)
    env.globals = {}
    env.filters = {key: val for key, val in env.filters.items() if key in _ALLOWED_FILTERS}
    env.tests = {key: val for key, val in env.tests.items() if key in _ALLOWED_TESTS}
    return env


def _plain(value: Any) -> Any:
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, dict):
        return {str(key): _plain(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_plain(val) for val in value]
    return str(value)


def render_template(text: str | None, context: dict[str, Any] | None, strict: bool = False) -> str:
    """Render a notification template; unknown names render empty unless ``strict``."""
    tmpl = _env(strict=strict).from_string(text or "")
    return tmpl.render(_plain(context or {}))


def check_templates(templates: Iterable[Tuple[str, str | None]], known_vars: Iterable[str]) -> list[dict]:
    """Return one issue per syntax error or unknown variable, labelled by template."""
    known = set(known_vars)
    env = _env(strict=False)
    issues: list[dict] = []
    for label, text in templates:
        if not text:
            continue
        try:
            parsed = env.parse(text)
        except TemplateSyntaxError as exc:
            issues.append(
                {
                    "code": "TEMPLATE_SYNTAX",
                    "message": f"{label}: {exc.message}",
                    "path": label,
                    "detail": {"line": exc.lineno or 1},
                }
            )
            continue
        for name in sorted(meta.find_undeclared_variables(parsed) - known):
            issues.append(
                {
                    "code": "TEMPLATE_UNKNOWN_VAR",
                    "message": f"{label}: unknown variable '{name}'",
                    "path": label,
                    "detail": {"variable": name},
                }
            )
    return issues
