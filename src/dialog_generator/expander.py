"""Expansion of ``${...}`` expressions embedded in a schema tree."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from dialog_generator.engine import EXPRESSION_START, TemplateEngine
from dialog_generator.models import Feedback, FeedbackType

PARAMETERS_KEY = "$parameters"
PROPERTY_SCHEMA_KEY = "property_schema"


def _is_expression(value: Any) -> bool:
    return isinstance(value, str) and value.startswith(EXPRESSION_START)


def _merge_top_level(values: list[Any]) -> Any:
    """De-duplicate a top-level array and fold object entries into one object."""
    flat: list[Any] = []
    for value in values:
        flat.extend(value if isinstance(value, list) else [value])
    unique: list[Any] = []
    for value in flat:
        if value not in unique:
            unique.append(value)
    if unique and isinstance(unique[0], dict):
        merged: dict[str, Any] = {}
        for value in unique:
            if isinstance(value, dict):
                merged.update(value)
        return merged
    return unique


def expand_schema(
    node: Any,
    scope: Mapping[str, Any],
    path: str,
    in_properties: bool,
    missing_is_error: bool,
    engine: TemplateEngine,
    feedback: Feedback,
) -> Any:
    """Return a copy of ``node`` with schema expressions evaluated.

    Args:
        node: Schema value to expand (object, array, or scalar).
        scope: Values visible to expressions.
        path: Dotted property path of ``node``; empty at the top level.
        in_properties: True when ``node`` is the value of a ``properties`` key.
        missing_is_error: Report unresolved expressions as errors. When false
            they are left in place silently.
        engine: Evaluates expression strings.
        feedback: Receives error events.

    Top-level arrays (paths without a dot) in which an expression produced a
    new value are treated as contributions from several schema fragments:
    duplicates are dropped and object entries are merged into one object.
    """
    if isinstance(node, list):
        expanded: list[Any] = []
        changed = False
        for value in node:
            new_value = expand_schema(value, scope, path, False, missing_is_error, engine, feedback)
            changed = changed or (_is_expression(value) and new_value != value)
            if new_value is None:
                continue
            if isinstance(new_value, list):
                expanded.extend(new_value)
            else:
                expanded.append(new_value)
        if changed and expanded and "." not in path:
            return _merge_top_level(expanded)
        return expanded

    if isinstance(node, dict):
        is_top_level = in_properties and PROPERTY_SCHEMA_KEY not in scope
        result: dict[str, Any] = {}
        for key, value in node.items():
            if key == PARAMETERS_KEY:
                result[key] = value
                continue
            new_path = path
            if in_properties:
                new_path = key if not path else f"{path}.{key}"
            child_scope = {**scope, "property": new_path}
            if is_top_level:
                child_scope[PROPERTY_SCHEMA_KEY] = value
            result[key] = expand_schema(
                value, child_scope, new_path, key == "properties", missing_is_error, engine, feedback
            )
        return result

    if _is_expression(node):
        try:
            value = engine.evaluate_text(node, scope)
        except Exception as exc:
            if missing_is_error:
                feedback(FeedbackType.error, f"Could not evaluate {node} in schema: {exc}")
            return node
        if value is None or value == "null":
            if missing_is_error:
                feedback(FeedbackType.error, f"Could not evaluate {node} in schema")
            return node
        return value

    return node
