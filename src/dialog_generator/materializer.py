"""Resolve logical template names into generated artifacts on disk."""

from __future__ import annotations

import json
import os
import re
from pathlib import Path, PurePosixPath
from typing import Any

from pydantic import BaseModel, ConfigDict

from dialog_generator.engine import TemplateEngine
from dialog_generator.hashing import stringify, write_file
from dialog_generator.locator import find_template
from dialog_generator.models import Feedback, FeedbackType, LiteralTemplate, StructuredTemplate
from dialog_generator.scope import Scope

ASSET_DIRECTORIES = {
    ".dialog": "dialogDir",
    ".lg": "generationDir",
    ".lu": "understandingDir",
    ".qna": "knowledgeDir",
}
DEFAULT_PROPERTY_DIR = "form"
GENERIC_ENTITY = "genericEntity"
MISSING_MARKER = "**MISSING**"

ENTITY_RE = re.compile(r".*Entity")
PLACEHOLDER_RE = re.compile(r"\*\*([^0-9\s]+)[0-9]+\*\*")
REFERENCE_LINE_RE = re.compile(r"^[ \t]*\[[^\]\n\r]*\].*$", re.MULTILINE)


class Generation(BaseModel):
    """Run-wide settings shared by every ``process_template`` call."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    template_dirs: list[Path]
    out_dir: Path
    engine: TemplateEngine
    feedback: Feedback
    force: bool = False


def asset_directory(extension: str, engine: TemplateEngine) -> str:
    """Return the output folder for an extension as named by the generator template."""
    name = ASSET_DIRECTORIES.get(extension)
    if not name or engine.generator is None or not engine.generator.has(name):
        return ""
    directory = str(engine.evaluate(engine.generator, name, {})).strip()
    if directory and not directory.endswith("/"):
        directory += "/"
    return directory


def add_prefix(prefix: str, name: str) -> str:
    """Prefix the file name part of ``name``."""
    directory, _, base = name.rpartition("/")
    return f"{directory}/{prefix}-{base}" if directory else f"{prefix}-{name}"


def add_prefix_to_imports(text: str, prefix: str) -> str:
    """Point ``[name]`` reference lines of copied files at this run's prefixed names."""

    def replace(match: re.Match[str]) -> str:
        line = match.group(0)
        ref = line[line.index("[") + 1 : line.index("]")]
        return f"[{prefix}-{ref}]({prefix}-{ref})"

    return REFERENCE_LINE_RE.sub(replace, text)


def as_list(value: Any) -> list[str]:
    if isinstance(value, list):
        return [str(item) for item in value]
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                parsed = json.loads(text)
            except ValueError:
                parsed = None
            if isinstance(parsed, list):
                return [str(item) for item in parsed]
        return [text] if text else []
    return [] if value is None else [str(value)]


def _as_text(value: Any) -> str:
    if isinstance(value, list):
        return os.linesep.join(str(item) for item in value)
    if isinstance(value, dict):
        return stringify(value)
    return "" if value is None else str(value)


def _output_filename(template_name: str, template: LiteralTemplate | StructuredTemplate, generation: Generation, scope: Scope) -> str:
    if isinstance(template, StructuredTemplate) and template.has("filename"):
        return str(generation.engine.evaluate(template, "filename", scope)).strip()

    filename = add_prefix(scope.get("prefix", ""), template_name)
    locale = scope.get("locale")
    locale_dir = f"{locale}/" if locale and locale in filename else ""
    property_dir = scope.get("property") or DEFAULT_PROPERTY_DIR
    extension = PurePosixPath(filename).suffix
    return f"{asset_directory(extension, generation.engine)}{locale_dir}{property_dir}/{PurePosixPath(filename).name}"


def _generate_artifact(
    template_name: str,
    template: LiteralTemplate | StructuredTemplate,
    generation: Generation,
    scope: Scope,
) -> Path | None:
    feedback = generation.feedback
    source = template.source if isinstance(template, LiteralTemplate) else template.id
    feedback(FeedbackType.debug, f"Using template {source}")

    filename = _output_filename(template_name, template, generation, scope)
    out_path = generation.out_dir / filename
    files = scope["files"]
    ref = files.record_if_new(out_path, generation.out_dir, scope.get("prefix", ""))
    if ref is None:
        return out_path

    if not generation.force and out_path.exists():
        feedback(FeedbackType.warning, f"Skipping already existing {out_path}")
        files.add(ref)
        return out_path

    feedback(FeedbackType.info, f"Generating {out_path}")
    if isinstance(template, LiteralTemplate):
        result = add_prefix_to_imports(template.text, scope.get("prefix", ""))
    else:
        result = _as_text(generation.engine.evaluate(template, "template", scope))

    override = find_template(filename, generation.template_dirs)
    if isinstance(override, LiteralTemplate) and override.source.as_posix().endswith(
        PurePosixPath(filename).as_posix()
    ):
        feedback(FeedbackType.info, f"  Overridden by {override.source}")
        result = override.text

    if not result:
        return out_path

    if MISSING_MARKER in result:
        feedback(FeedbackType.error, f"{out_path} has {MISSING_MARKER} data")
    else:
        match = PLACEHOLDER_RE.search(result)
        if match:
            feedback(FeedbackType.warning, f"Replace **{match.group(1)}<N>** with values in {out_path}")

    write_file(out_path, result, feedback)
    files.add(ref)
    return out_path


def process_template(
    template_name: str,
    generation: Generation,
    scope: Scope,
    ignorable: bool = False,
    expanding: tuple[str, ...] = (),
) -> Path | None:
    """Materialize one logical template name into zero, one, or many artifacts.

    Args:
        template_name: Logical name to resolve against the template directories.
        generation: Run-wide directories, engine, feedback sink, and force flag.
        scope: Values visible to the template.
        ignorable: Do not report an error when no template is found.
        expanding: Names of multi-artifact templates currently being expanded.

    Returns:
        The output path of a generating template, otherwise ``None``.

    A name already written in this run is reused without touching the disk.
    Names ending in ``Entity`` with no template retry once as
    ``genericEntity``. Any failure is reported through ``generation.feedback``
    so sibling templates keep going.
    """
    feedback = generation.feedback
    try:
        ref = scope["files"].lookup_by_filename(template_name)
        if ref is not None:
            feedback(FeedbackType.debug, f"Reusing {template_name}")
            return generation.out_dir / ref.relative

        template = find_template(template_name, generation.template_dirs)
        if template is None and "Entity" in template_name:
            feedback(FeedbackType.debug, f"Generic of {template_name}")
            template_name = ENTITY_RE.sub(GENERIC_ENTITY, template_name, count=1)
            template = find_template(template_name, generation.template_dirs)

        if template is None:
            if not ignorable:
                feedback(FeedbackType.error, f"Missing template {template_name}")
            return None

        if isinstance(template, LiteralTemplate) or template.has("template"):
            return _generate_artifact(template_name, template, generation, scope)

        if template.has("templates"):
            if template_name in expanding:
                feedback(FeedbackType.debug, f"Already expanding {template_name}")
                return None
            feedback(FeedbackType.debug, f"Expanding template {template.id}")
            names = as_list(generation.engine.evaluate(template, "templates", scope))
            for name in names:
                feedback(FeedbackType.debug, f"  {name}")
            for name in names:
                process_template(name, generation, scope, False, (*expanding, template_name))
    except Exception as exc:
        feedback(FeedbackType.error, f"{template_name}: {exc}")
    return None
