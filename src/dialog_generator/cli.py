"""Typer-based CLI for generating, checking, and diagnosing dialog assets."""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path

import typer

from dialog_generator.hashing import COMMENT_HASH_EXTENSIONS, JSON_HASH_EXTENSIONS, extract_hash, is_unchanged
from dialog_generator.locator import TEMPLATE_DIRS_ENV, template_directories
from dialog_generator.models import Feedback, FeedbackType
from dialog_generator.orchestrator import (
    DEFAULT_LOCALES,
    GENERATOR_TEMPLATE,
    expand_property_definition,
    find_generator_template,
    generate as generate_assets,
)

app = typer.Typer(add_completion=False, help="dialog-generator: generate dialog assets from a JSON schema")

_COLORS = {
    FeedbackType.warning: typer.colors.YELLOW,
    FeedbackType.error: typer.colors.RED,
    FeedbackType.debug: typer.colors.BRIGHT_BLACK,
}


def _console_feedback(debug: bool) -> Feedback:
    """Build a feedback sink that prints events, hiding debug output unless asked."""

    def sink(kind: FeedbackType, message: str) -> None:
        if kind == FeedbackType.debug and not debug:
            return
        prefix = f"{kind.value.upper()}: " if kind in (FeedbackType.warning, FeedbackType.error) else ""
        typer.secho(f"{prefix}{message}", fg=_COLORS.get(kind), err=kind == FeedbackType.error)

    return sink


@app.command("generate")
def generate(
    schema: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON schema to generate assets for"),
    prefix: str | None = typer.Option(None, "--prefix", "-p", help="Prefix for generated files"),
    output: Path | None = typer.Option(None, "--output", "-o", help="Output directory"),
    meta_schema: str | None = typer.Option(None, "--schema", "-s", help="Schema referenced by .dialog files"),
    locale: list[str] | None = typer.Option(None, "--locale", "-l", help="Locale to generate (repeatable)"),
    templates: list[str] | None = typer.Option(
        None, "--templates", "-t", help="Template directory, or template:<name> for a built-in set (repeatable)"
    ),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite existing files"),
    merge: bool = typer.Option(False, "--merge", "-m", help="Merge into previously generated assets"),
    singleton: bool = typer.Option(False, "--singleton", help="Inline referenced dialogs into the root dialog"),
    debug: bool = typer.Option(False, "--debug", "-d", help="Show debug output"),
) -> None:
    """Generate .dialog, .lg, .lu and .qna assets from a schema."""
    if debug:
        logging.basicConfig(level=logging.DEBUG)
    ok = generate_assets(
        schema,
        prefix=prefix,
        out_dir=output,
        meta_schema=meta_schema,
        locales=locale or DEFAULT_LOCALES,
        template_dirs=templates or [],
        force=force,
        merge=merge,
        singleton=singleton,
        feedback=_console_feedback(debug),
        drain_delay=0,
    )
    if not ok:
        raise typer.Exit(code=1)


@app.command("expand-property")
def expand_property(
    name: str = typer.Argument(..., help="Property name"),
    definition: str = typer.Argument(..., help="Property schema as JSON text or a path to a JSON file"),
    templates: list[str] | None = typer.Option(None, "--templates", "-t", help="Template directory (repeatable)"),
) -> None:
    """Print a property definition with expressions and $entities filled in."""
    text = definition
    if not definition.lstrip().startswith("{"):
        try:
            text = Path(definition).read_text(encoding="utf-8")
        except OSError as exc:
            raise typer.BadParameter(f"Cannot read property definition: {exc}") from exc
    try:
        property_schema = json.loads(text)
    except json.JSONDecodeError as exc:
        raise typer.BadParameter(f"Invalid JSON property definition: {exc}") from exc
    if not isinstance(property_schema, dict):
        raise typer.BadParameter("Property definition must be a JSON object.")
    try:
        expanded = expand_property_definition(name, property_schema, templates or [])
    except Exception as exc:
        raise typer.BadParameter(str(exc)) from exc
    typer.echo(json.dumps(expanded, indent=2, ensure_ascii=False))


@app.command("check")
def check(
    directory: Path = typer.Argument(..., exists=True, file_okay=False, help="Generated asset directory"),
) -> None:
    """Report which generated assets were modified since generation."""
    counts = {"unchanged": 0, "modified": 0, "untracked": 0}
    extensions = (*COMMENT_HASH_EXTENSIONS, *JSON_HASH_EXTENSIONS)
    for path in sorted(directory.rglob("*")):
        if not path.is_file() or path.suffix not in extensions:
            continue
        relative = path.relative_to(directory).as_posix()
        if extract_hash(path) is None:
            counts["untracked"] += 1
            typer.echo(f"untracked  {relative}")
        elif is_unchanged(path):
            counts["unchanged"] += 1
        else:
            counts["modified"] += 1
            typer.secho(f"modified   {relative}", fg=typer.colors.YELLOW)
    typer.echo(
        f"Check complete. unchanged={counts['unchanged']} modified={counts['modified']} "
        f"untracked={counts['untracked']}"
    )


@app.command("doctor")
def doctor(
    templates: list[str] | None = typer.Option(None, "--templates", "-t", help="Template directory (repeatable)"),
) -> None:
    """Print the template directories and generator template a run would use."""
    dirs = template_directories(templates or [])
    typer.echo(f"{TEMPLATE_DIRS_ENV} set: {bool(os.getenv(TEMPLATE_DIRS_ENV))}")
    for directory in dirs:
        typer.echo(f"Template dir: {directory} (exists: {directory.is_dir()})")
    generator = find_generator_template(dirs)
    if generator is None:
        typer.secho(f"{GENERATOR_TEMPLATE} not found", fg=typer.colors.RED)
    else:
        typer.echo(f"Generator template: {generator.source}")


if __name__ == "__main__":
    app()
