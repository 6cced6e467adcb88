"""Drive a full generation run from a schema file to an asset tree."""

from __future__ import annotations

import logging
import os
import tempfile
import time
from contextlib import ExitStack
from pathlib import Path
from typing import Any, Callable

from dialog_generator.engine import TemplateEngine, load_structured_template
from dialog_generator.expander import expand_schema
from dialog_generator.hashing import stringify, write_file
from dialog_generator.locator import TEMPLATE_SUFFIX, find_template, resolve_dirs, template_directories
from dialog_generator.materializer import Generation, as_list, process_template
from dialog_generator.merger import merge_assets
from dialog_generator.models import Feedback, FeedbackType, StructuredTemplate
from dialog_generator.schema import Schema, process_schemas, type_name
from dialog_generator.scope import Scope
from dialog_generator.singleton import generate_singleton
from dialog_generator.tracker import FileTracker

logger = logging.getLogger("dialog_generator")

DEFAULT_LOCALES = ["en-us"]
DEFAULT_META_SCHEMA = (
    "https://raw.githubusercontent.com/microsoft/botbuilder-samples/main/experimental/generation/runbot/runbot.schema"
)
GENERATOR_TEMPLATE = f"generator{TEMPLATE_SUFFIX}"
BOOKKEEPING_KEYS = frozenset({"$templates", "$requires", "$templateDirs", "$examples"})
UTTERANCE_ENTITY = "utterance"

Merger = Callable[[str, Path, Path, Path, list[str], Feedback], None]

_LOG_LEVELS = {
    FeedbackType.message: logging.INFO,
    FeedbackType.info: logging.INFO,
    FeedbackType.warning: logging.WARNING,
    FeedbackType.error: logging.ERROR,
    FeedbackType.debug: logging.DEBUG,
}


def log_feedback(kind: FeedbackType, message: str) -> None:
    """Default feedback sink that forwards events to the ``dialog_generator`` logger."""
    logger.log(_LOG_LEVELS[kind], message)


class FeedbackRecorder:
    """Forwards feedback and remembers whether any error was reported."""

    def __init__(self, sink: Feedback):
        self.sink = sink
        self.error = False

    def __call__(self, kind: FeedbackType, message: str) -> None:
        if kind == FeedbackType.error:
            self.error = True
        self.sink(kind, message)


def find_generator_template(start_dirs: list[Path]) -> StructuredTemplate | None:
    """Load ``generator.tmpl.yaml`` from the parent of the first template directory that has one."""
    for directory in start_dirs:
        candidate = Path(directory).parent / GENERATOR_TEMPLATE
        if candidate.is_file():
            return load_structured_template(candidate)
    return None


def global_examples(out_dir: Path, scope: Scope) -> dict[str, list[str]]:
    """Collect ``>> name:`` example blocks from the ``.lu`` files of the current locale.

    Lines starting with ``-`` after a ``>> name:`` line are examples of
    ``name``; any other ``>`` line ends the block.
    """
    examples: dict[str, list[str]] = {}
    for ref in scope["files"].bucket("lu"):
        contents = (Path(out_dir) / ref.relative).read_text(encoding="utf-8")
        collect: str | None = None
        for line in contents.splitlines():
            if line.startswith(">>"):
                collect = line[2:].partition(":")[0].strip()
                examples.setdefault(collect, [])
            elif line.startswith(">"):
                collect = None
            elif collect and line.startswith("-"):
                examples[collect].append(line[1:].strip())
    return examples


def ensure_entities(schema: Schema, generation: Generation, scope: Scope) -> None:
    """Give every schema property an ``$entities`` list.

    Array properties inherit the entities of their items. Otherwise the
    ``entities`` sub-template of the property's templates is evaluated. A
    property left without entities is reported as an error.
    """
    feedback = generation.feedback
    for prop in schema.schema_properties():
        items = prop.node.get("items")
        if isinstance(items, dict) and items.get("$entities"):
            prop.node["$entities"] = items["$entities"]
        if prop.node.get("$entities"):
            continue
        try:
            prop_scope = scope.extend(property=prop.path, type=prop.type_name())
            for name in prop.node.get("$templates") or [prop_scope["type"]]:
                template = find_template(name, generation.template_dirs)
                if (
                    isinstance(template, StructuredTemplate)
                    and template.has("entities")
                    and not prop.node.get("$entities")
                ):
                    feedback(FeedbackType.debug, f"Expanding template {template.id} for {prop.path} $entities")
                    entities = as_list(generation.engine.evaluate(template, "entities", prop_scope))
                    if entities:
                        prop.node["$entities"] = entities
            if not prop.node.get("$entities"):
                feedback(FeedbackType.error, f"{prop.path} has no $entities")
        except Exception as exc:
            feedback(FeedbackType.error, f"{prop.path}: {exc}")


def _entity_examples(schema: Schema, prop_schema: dict[str, Any], entity_type: str, entities: list[str], locale: str) -> Any:
    examples = (schema.schema.get("$examples") or {}).get(entity_type)
    if isinstance(examples, dict) and locale in examples:
        examples = examples[locale]
    if not examples and prop_schema.get("examples"):
        if len([entity for entity in entities if entity != UTTERANCE_ENTITY]) == 1:
            examples = prop_schema["examples"]
    return examples


def process_templates(schema: Schema, generation: Generation, locales: list[str], scope: Scope) -> None:
    """Generate every property, entity, and schema-level template for each locale."""
    feedback = generation.feedback
    for locale in locales:
        locale_scope = scope.extend(locale=locale)
        for prop in schema.schema_properties():
            prop_scope = locale_scope.extend(property=prop.path, type=prop.type_name())
            own_templates = prop.node.get("$templates")
            for name in own_templates or [prop_scope["type"]]:
                process_template(name, generation, prop_scope)

            entities = prop.node.get("$entities")
            if not entities:
                feedback(FeedbackType.error, f"{prop.path} does not have $entities defined in schema or template.")
                continue
            if own_templates:
                continue
            for entity_name in entities:
                entity_type = prop_scope["type"] if entity_name == f"{prop.path}Entity" else entity_name
                entity_scope = prop_scope.extend(
                    entity=entity_name,
                    examples=_entity_examples(schema, prop.node, entity_type, entities, locale),
                )
                process_template(f"{entity_type}Entity-{prop_scope['type']}", generation, entity_scope)

        if schema.schema.get("$templates"):
            top_scope = locale_scope.extend(examples=global_examples(generation.out_dir, locale_scope))
            for name in schema.schema["$templates"]:
                process_template(name, generation, top_scope)

        scope["files"].reset()


def strip_bookkeeping(value: Any) -> Any:
    """Drop generator-only keys from a resolved schema at every level."""
    if isinstance(value, dict):
        return {key: strip_bookkeeping(item) for key, item in value.items() if key not in BOOKKEEPING_KEYS}
    if isinstance(value, list):
        return [strip_bookkeeping(item) for item in value]
    return value


def generate_file(path: Path, content: str, force: bool, feedback: Feedback) -> None:
    if force or not path.exists():
        feedback(FeedbackType.info, f"Generating {path}")
        write_file(path, content, feedback)
    else:
        feedback(FeedbackType.warning, f"Skipping already existing {path}")


def _default_prefix(schema_path: Path) -> str:
    name = schema_path.name
    return name.rpartition(".")[0] if "." in name else name


def generate(
    schema_path: Path | str,
    prefix: str | None = None,
    out_dir: Path | str | None = None,
    meta_schema: str | None = None,
    locales: list[str] | None = None,
    template_dirs: list[str | Path] | None = None,
    force: bool = False,
    merge: bool = False,
    singleton: bool = False,
    feedback: Feedback | None = None,
    merger: Merger = merge_assets,
    drain_delay: float = 0.5,
) -> bool:
    """Generate assets for a schema.

    Args:
        schema_path: JSON schema describing the properties to generate.
        prefix: Prefix for generated file names; defaults to the schema file stem.
        out_dir: Output directory; defaults to ``<prefix>-resources``.
        meta_schema: Schema referenced by generated ``.dialog`` files. Local
            paths are made relative to ``out_dir``.
        locales: Locales to generate; defaults to ``["en-us"]``.
        template_dirs: Template directories searched before the ones the
            schema requires.
        force: Overwrite existing files. Disables ``merge``.
        merge: Merge the new tree into the existing output with ``merger``.
        singleton: Inline the ``.dialog`` files referenced by the root dialog.
        feedback: Progress and error sink; defaults to ``log_feedback``.
        merger: Merge collaborator used when ``merge`` is set.
        drain_delay: Seconds to wait before returning so asynchronous log
            handlers can flush.

    Returns:
        True when no error was reported.
    """
    external = feedback or log_feedback
    recorder = FeedbackRecorder(external)
    schema_path = Path(schema_path)
    prefix = prefix or _default_prefix(schema_path)
    out_dir = Path(out_dir) if out_dir else Path(f"{prefix}-resources")
    if not meta_schema:
        meta_schema = DEFAULT_META_SCHEMA
    elif not meta_schema.startswith("http"):
        meta_schema = Path(os.path.relpath(meta_schema, out_dir)).as_posix()
    locales = list(locales or DEFAULT_LOCALES)
    template_dirs = list(template_dirs or [])
    if force:
        merge = False

    try:
        with ExitStack() as stack:
            if not out_dir.exists() or not any(out_dir.iterdir()):
                force = False
                merge = False
                out_dir.mkdir(parents=True, exist_ok=True)

            op = "Regenerating" if force else "Merging" if merge else "Generating"
            recorder(FeedbackType.message, f"{op} resources for {schema_path.stem} in {out_dir}")
            recorder(FeedbackType.message, f"Locales: {locales}")
            recorder(FeedbackType.message, f"Templates: {[str(d) for d in template_dirs]}")
            recorder(FeedbackType.message, f"App.schema: {meta_schema}")

            out_path = out_dir
            out_path_single = out_dir
            if merge or singleton:
                out_path = Path(stack.enter_context(tempfile.TemporaryDirectory(prefix="dialog-generator-new-")))
                out_path_single = Path(
                    stack.enter_context(tempfile.TemporaryDirectory(prefix="dialog-generator-single-"))
                )

            start_dirs = template_directories(template_dirs)
            generator = find_generator_template(start_dirs)
            if generator is None:
                recorder(FeedbackType.error, f"Templates must include a parent {GENERATOR_TEMPLATE}")
            engine = TemplateEngine(generator)

            schema = process_schemas(schema_path, start_dirs, recorder)
            schema.schema = expand_schema(schema.schema, {}, "", False, False, engine, recorder)

            schema_dirs = resolve_dirs(as_list(schema.schema.get("$templateDirs")))
            explicit_dirs = resolve_dirs(template_dirs)
            all_dirs = [*explicit_dirs, *[d for d in schema_dirs if d not in explicit_dirs]] or start_dirs

            scope = Scope(
                locales=locales,
                prefix=prefix,
                schema=schema.schema,
                operations=schema.schema.get("$operations"),
                properties=schema.schema.get("$public"),
                trigger_intent=schema.trigger_intent(),
                app_schema=meta_schema,
                utterances=set(),
                files=FileTracker(),
            )
            parameters = schema.schema.get("$parameters")
            if isinstance(parameters, dict):
                scope = scope.extend(parameters)

            generation = Generation(
                template_dirs=all_dirs, out_dir=out_path, engine=engine, feedback=recorder, force=force
            )
            ensure_entities(schema, generation, scope)
            scope = scope.extend(entities=schema.entity_to_properties())

            process_templates(schema, generation, locales, scope)

            expanded = expand_schema(schema.schema, scope, "", False, True, engine, recorder)

            if not recorder.error:
                body = stringify(strip_bookkeeping(expanded))
                generate_file(out_path / f"{prefix}.json", body, force, recorder)

                if singleton:
                    if not merge:
                        recorder(FeedbackType.info, "Combining into singleton .dialog")
                        generate_singleton(prefix, out_path, out_dir, recorder)
                    else:
                        generate_singleton(prefix, out_path, out_path_single, recorder)

                if merge:
                    merger(prefix, out_dir, out_path_single if singleton else out_path, out_dir, locales, recorder)
    except Exception as exc:
        recorder(FeedbackType.error, str(exc))

    success = not recorder.error
    if not success:
        external(FeedbackType.error, "*** Errors prevented generation ***")

    time.sleep(drain_delay)
    return success


def _raise_on_error(kind: FeedbackType, message: str) -> None:
    if kind == FeedbackType.error:
        raise RuntimeError(message)


def expand_property_definition(
    property_name: str,
    property_schema: dict[str, Any],
    template_dirs: list[str | Path] | None = None,
) -> dict[str, Any]:
    """Expand one property definition and fill in ``$entities`` when missing.

    Useful for editors that add a property to an existing schema and need
    the same defaults a full generation run would compute.
    """
    dirs = template_directories(template_dirs)
    engine = TemplateEngine(find_generator_template(dirs))
    wrapped = {"properties": {property_name: property_schema}}
    expanded = expand_schema(wrapped, {}, "", False, False, engine, _raise_on_error)["properties"][property_name]
    if not expanded.get("$entities"):
        scope = Scope(property=property_name, type=type_name(expanded))
        template = find_template(scope["type"], dirs)
        if isinstance(template, StructuredTemplate) and template.has("entities"):
            entities = as_list(engine.evaluate(template, "entities", scope))
            if entities:
                expanded["$entities"] = entities
    return expanded
