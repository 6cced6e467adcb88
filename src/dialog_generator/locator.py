"""Template lookup across an ordered list of template directories."""

from __future__ import annotations

import os
from pathlib import Path

from dialog_generator.engine import load_structured_template
from dialog_generator.models import LiteralTemplate, Template

TEMPLATE_SUFFIX = ".tmpl.yaml"
TEMPLATE_DIRS_ENV = "DIALOG_GENERATOR_TEMPLATES"
BUILTIN_PREFIX = "template:"
BUILTIN_TEMPLATES_DIR = Path(__file__).with_name("templates")


def find_template(name: str, template_dirs: list[Path]) -> Template | None:
    """Return the first literal or structured template named ``name``.

    Each directory is checked for a literal file ``name`` and then for a
    structured ``name.tmpl.yaml``. The first hit wins; directories are never
    merged.
    """
    for directory in template_dirs:
        literal = Path(directory) / name
        if literal.is_file():
            return LiteralTemplate(source=literal, text=literal.read_text(encoding="utf-8"))
        structured = Path(directory) / f"{name}{TEMPLATE_SUFFIX}"
        if structured.is_file():
            return load_structured_template(structured)
    return None


def resolve_dirs(dirs: list[str | Path]) -> list[Path]:
    """Resolve directories to absolute paths, expanding ``template:<name>`` to the built-in set."""
    resolved: list[Path] = []
    for entry in dirs:
        text = str(entry)
        if text.startswith(BUILTIN_PREFIX):
            resolved.append((BUILTIN_TEMPLATES_DIR / text[len(BUILTIN_PREFIX) :]).resolve())
        else:
            resolved.append(Path(text.replace("\\", "/")).expanduser().resolve())
    return resolved


def template_directories(template_dirs: list[str | Path] | None = None) -> list[Path]:
    """Resolve the starting template directories for a run.

    Resolution order:
    1. ``template_dirs`` when non-empty.
    2. ``DIALOG_GENERATOR_TEMPLATES`` (``os.pathsep`` separated).
    3. Every subdirectory of the built-in ``templates/`` folder.
    """
    dirs = list(template_dirs or [])
    if not dirs:
        env_value = (os.getenv(TEMPLATE_DIRS_ENV) or "").strip()
        dirs = [entry for entry in env_value.split(os.pathsep) if entry.strip()]
    if dirs:
        return resolve_dirs(dirs)
    return sorted(child.resolve() for child in BUILTIN_TEMPLATES_DIR.iterdir() if child.is_dir())
