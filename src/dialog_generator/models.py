"""Pydantic models shared across template lookup, materialization, and tracking."""

from __future__ import annotations

from collections.abc import Callable
from enum import Enum
from pathlib import Path
from typing import Any, Literal, Union

from pydantic import BaseModel, Field


class FeedbackType(str, Enum):
    """Severity of a feedback event reported during generation."""

    message = "message"
    info = "info"
    warning = "warning"
    error = "error"
    debug = "debug"


Feedback = Callable[[FeedbackType, str], None]


class FileRef(BaseModel):
    """One artifact already materialized in the current run."""

    name: str
    short_name: str
    fallback_name: str
    full_name: str
    relative: str


class LiteralTemplate(BaseModel):
    """A file copied verbatim into the output tree."""

    kind: Literal["literal"] = "literal"
    source: Path
    text: str


class StructuredTemplate(BaseModel):
    """A YAML file mapping sub-template names to jinja2 sources."""

    kind: Literal["structured"] = "structured"
    source: Path
    templates: dict[str, Any] = Field(default_factory=dict)

    @property
    def id(self) -> str:
        return self.source.name

    @property
    def directory(self) -> Path:
        return self.source.parent

    def has(self, name: str) -> bool:
        return name in self.templates


Template = Union[LiteralTemplate, StructuredTemplate]
