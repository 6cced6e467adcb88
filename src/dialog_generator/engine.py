"""Template evaluation on top of jinja2, with structured templates stored as YAML."""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from pathlib import Path
from typing import Any

import yaml
from jinja2 import Environment, FileSystemLoader, StrictUndefined

from dialog_generator.models import StructuredTemplate

EXPRESSION_START = "${"


class TemplateError(RuntimeError):
    """Raised for malformed structured templates or unknown sub-templates."""


def load_structured_template(path: Path) -> StructuredTemplate:
    """Parse a ``.tmpl.yaml`` file into a ``StructuredTemplate``.

    Raises:
        TemplateError: If the document is not a mapping of sub-templates.
    """
    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise TemplateError(f"{path}: structured template must be a mapping of sub-templates")
    return StructuredTemplate(source=path, templates={str(key): value for key, value in data.items()})


def split_expressions(text: str) -> list[tuple[bool, str]]:
    """Split text into literal and ``${...}`` expression segments.

    Braces nest and quoted strings are skipped, so ``${ {'a': 1} }`` is a
    single expression. An unterminated marker is kept as literal text.
    """
    segments: list[tuple[bool, str]] = []
    literal_start = 0
    index = 0
    while True:
        start = text.find(EXPRESSION_START, index)
        if start < 0:
            break
        depth = 0
        quote: str | None = None
        end = -1
        position = start + 1
        while position < len(text):
            char = text[position]
            if quote:
                if char == "\\":
                    position += 1
                elif char == quote:
                    quote = None
            elif char in "'\"":
                quote = char
            elif char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    end = position
                    break
            position += 1
        if end < 0:
            break
        if start > literal_start:
            segments.append((False, text[literal_start:start]))
        segments.append((True, text[start + 2 : end].strip()))
        literal_start = index = end + 1
    if literal_start < len(text):
        segments.append((False, text[literal_start:]))
    return segments


class TemplateNamespace:
    """Exposes the sub-templates of one structured template as callables."""

    def __init__(self, engine: TemplateEngine, template: StructuredTemplate, scope: Mapping[str, Any]):
        self._engine = engine
        self._template = template
        self._scope = scope

    def __getattr__(self, name: str) -> Callable[..., Any]:
        if name.startswith("_") or not self._template.has(name):
            raise AttributeError(f"{self._template.id} has no template {name!r}")

        def render(**values: Any) -> Any:
            return self._engine.evaluate(self._template, name, {**self._scope, **values})

        return render


class TemplateEngine:
    """Evaluates structured templates and ``${...}`` expressions against a scope.

    One engine is created per generation run. ``generator`` is the run's
    generator template; its sub-templates are reachable from every template
    and expression as ``generator.<name>()``.
    """

    def __init__(self, generator: StructuredTemplate | None = None):
        self.generator = generator
        self._functions: dict[str, Callable[..., Any]] = {}
        self._environments: dict[Path | None, Environment] = {}

    def register_function(self, name: str, func: Callable[..., Any]) -> None:
        """Make ``func`` callable by ``name`` from templates and expressions."""
        self._functions[name] = func
        for env in self._environments.values():
            env.globals[name] = func

    def environment(self, base_dir: Path | None = None) -> Environment:
        """Return the cached jinja2 environment rooted at ``base_dir``."""
        env = self._environments.get(base_dir)
        if env is None:
            env = Environment(
                loader=FileSystemLoader(str(base_dir)) if base_dir else None,
                undefined=StrictUndefined,
                autoescape=False,
                keep_trailing_newline=True,
                trim_blocks=True,
                lstrip_blocks=True,
            )
            env.filters["json"] = lambda value: json.dumps(value, ensure_ascii=False)
            env.globals.update(self._functions)
            self._environments[base_dir] = env
        return env

    def _context(self, scope: Mapping[str, Any], template: StructuredTemplate | None) -> dict[str, Any]:
        context = dict(scope)
        if template is not None:
            context["tpl"] = TemplateNamespace(self, template, scope)
        if self.generator is not None:
            context["generator"] = TemplateNamespace(self, self.generator, scope)
        return context

    def evaluate(self, template: StructuredTemplate, name: str, scope: Mapping[str, Any]) -> Any:
        """Evaluate the sub-template ``name`` of ``template``.

        Includes and imports inside the template resolve relative to the
        template's own directory.

        Raises:
            TemplateError: If ``template`` does not define ``name``.
        """
        if not template.has(name):
            raise TemplateError(f"{template.id} does not define template {name!r}")
        env = self.environment(template.directory)
        context = self._context(scope, template)
        return self._render_value(env, template.templates[name], context)

    def _render_value(self, env: Environment, value: Any, context: dict[str, Any]) -> Any:
        if isinstance(value, str):
            return env.from_string(value).render(context)
        if isinstance(value, list):
            rendered = [self._render_value(env, item, context) for item in value]
            return [item for item in rendered if item != ""]
        if isinstance(value, dict):
            return {key: self._render_value(env, item, context) for key, item in value.items()}
        return value

    def evaluate_text(self, text: str, scope: Mapping[str, Any]) -> Any:
        """Evaluate ``${...}`` expressions embedded in ``text``.

        A string that is exactly one expression yields its native value, so
        objects, lists, and numbers are legal results. Otherwise each
        expression is interpolated as text. ``None`` is returned when any
        expression evaluates to nothing.
        """
        env = self.environment()
        context = self._context(scope, None)
        segments = split_expressions(text)
        if len(segments) == 1 and segments[0][0]:
            return env.compile_expression(segments[0][1])(**context)

        parts: list[str] = []
        for is_expression, segment in segments:
            if not is_expression:
                parts.append(segment)
                continue
            value = env.compile_expression(segment)(**context)
            if value is None:
                return None
            parts.append(value if isinstance(value, str) else json.dumps(value, ensure_ascii=False))
        return "".join(parts)
