"""Loading of generation schemas and the property view the generator works on."""

from __future__ import annotations

import copy
import json
from pathlib import Path
from typing import Any

from pydantic import BaseModel, SkipValidation

from dialog_generator.models import Feedback, FeedbackType

DEFAULT_REQUIRES = ["standard.schema"]


def type_name(node: dict[str, Any]) -> str:
    """Return the template-selecting type of a property schema."""
    if node.get("type") == "array" and isinstance(node.get("items"), dict):
        node = node["items"]
    if "enum" in node:
        return "enum"
    kind = node.get("type") or "object"
    if kind == "string" and isinstance(node.get("format"), str):
        return node["format"].replace("-", "")
    return kind


class SchemaProperty(BaseModel):
    """A leaf property of the schema and its raw schema node.

    ``node`` is the dict inside the schema tree itself, not a copy, so
    filling in ``$entities`` updates the schema.
    """

    path: str
    node: SkipValidation[dict[str, Any]]

    def type_name(self) -> str:
        return type_name(self.node)


class Schema:
    """A loaded schema with required schemas merged in."""

    def __init__(self, path: Path, schema: dict[str, Any]):
        self.path = Path(path)
        self.schema = schema

    @property
    def name(self) -> str:
        return self.path.name.split(".", 1)[0]

    def trigger_intent(self) -> str:
        return self.schema.get("$triggerIntent") or self.name

    def schema_properties(self) -> list[SchemaProperty]:
        """List leaf properties of the current tree, objects flattened into dotted paths."""
        found: list[SchemaProperty] = []

        def walk(properties: dict[str, Any], prefix: str) -> None:
            for key, node in properties.items():
                if not isinstance(node, dict):
                    continue
                path = f"{prefix}.{key}" if prefix else key
                nested = node.get("properties")
                if node.get("type") == "object" and isinstance(nested, dict) and "$templates" not in node:
                    walk(nested, path)
                else:
                    found.append(SchemaProperty(path=path, node=node))

        walk(self.schema.get("properties") or {}, "")
        return found

    def entity_to_properties(self) -> dict[str, list[str]]:
        mapping: dict[str, list[str]] = {}
        for prop in self.schema_properties():
            for entity in prop.node.get("$entities") or []:
                mapping.setdefault(entity, []).append(prop.path)
        return mapping


def merge_required(main: dict[str, Any], required: dict[str, Any]) -> None:
    """Merge a required schema into ``main``; values already in ``main`` win."""
    for key, value in required.items():
        if key not in main:
            main[key] = copy.deepcopy(value)
        elif isinstance(main[key], dict) and isinstance(value, dict):
            merge_required(main[key], value)
        elif isinstance(main[key], list) and isinstance(value, list):
            main[key].extend(copy.deepcopy(item) for item in value if item not in main[key])


def _find_schema(name: str, template_dirs: list[Path]) -> Path | None:
    for directory in template_dirs:
        candidate = Path(directory) / name
        if candidate.is_file():
            return candidate
    return None


def process_schemas(schema_path: Path | str, template_dirs: list[Path], feedback: Feedback) -> Schema:
    """Load ``schema_path`` and merge the schemas named by ``$requires``.

    Required schemas are looked up in ``template_dirs`` in order. The
    directories that supplied one are recorded in ``$templateDirs``.

    Raises:
        OSError: If the schema file cannot be read.
        ValueError: If the schema is not a JSON object.
    """
    schema_path = Path(schema_path)
    main = json.loads(schema_path.read_text(encoding="utf-8"))
    if not isinstance(main, dict):
        raise ValueError(f"{schema_path} must contain a JSON object")

    used_dirs: list[str] = []
    seen: set[str] = set()

    def require(names: list[str], explicit: bool) -> None:
        for name in names:
            if name in seen:
                continue
            seen.add(name)
            path = _find_schema(name, template_dirs)
            if path is None:
                severity = FeedbackType.error if explicit else FeedbackType.debug
                feedback(severity, f"Missing required schema {name}")
                continue
            feedback(FeedbackType.debug, f"Requiring {path}")
            required = json.loads(path.read_text(encoding="utf-8"))
            require(required.pop("$requires", None) or [], True)
            merge_required(main, required)
            directory = str(path.parent)
            if directory not in used_dirs:
                used_dirs.append(directory)

    if "$requires" in main:
        require(main["$requires"], True)
    else:
        require(DEFAULT_REQUIRES, False)
    template_dirs_seen = list(main.get("$templateDirs") or [])
    main["$templateDirs"] = template_dirs_seen + [d for d in used_dirs if d not in template_dirs_seen]
    main.setdefault("$examples", {})
    main.setdefault("$public", list((main.get("properties") or {}).keys()))
    return Schema(schema_path, main)
