from __future__ import annotations

import os
from pathlib import Path

from dialog_generator.locator import (
    BUILTIN_TEMPLATES_DIR,
    TEMPLATE_DIRS_ENV,
    find_template,
    resolve_dirs,
    template_directories,
)
from dialog_generator.models import LiteralTemplate, StructuredTemplate


def test_find_template_given_same_name_in_two_dirs_when_found_then_first_directory_wins(
    tmp_path: Path, write_files
) -> None:
    # Given
    first = write_files(tmp_path / "first", {"greeting.lg": "# first\n"})
    second = write_files(tmp_path / "second", {"greeting.lg": "# second\n"})

    # When
    template = find_template("greeting.lg", [first, second])

    # Then
    assert isinstance(template, LiteralTemplate)
    assert template.text == "# first\n"


def test_find_template_given_structured_file_when_found_then_sub_templates_are_loaded(
    tmp_path: Path, write_files
) -> None:
    # Given
    directory = write_files(tmp_path / "dir", {"string.tmpl.yaml": "entities:\n  - utterance\n"})

    # When
    template = find_template("string", [directory])

    # Then
    assert isinstance(template, StructuredTemplate)
    assert template.id == "string.tmpl.yaml"
    assert template.has("entities")
    assert find_template("missing", [directory]) is None


def test_template_directories_given_env_var_when_no_explicit_dirs_then_env_dirs_are_used(
    tmp_path: Path, monkeypatch
) -> None:
    # Given
    a = tmp_path / "a"
    b = tmp_path / "b"
    monkeypatch.setenv(TEMPLATE_DIRS_ENV, os.pathsep.join([str(a), str(b)]))

    # When
    dirs = template_directories()

    # Then
    assert dirs == [a.resolve(), b.resolve()]


def test_template_directories_given_nothing_configured_when_resolved_then_builtin_sets_are_used(monkeypatch) -> None:
    # Given
    monkeypatch.delenv(TEMPLATE_DIRS_ENV, raising=False)

    # When
    dirs = template_directories()

    # Then
    assert (BUILTIN_TEMPLATES_DIR / "standard").resolve() in dirs


def test_resolve_dirs_given_builtin_prefix_when_resolved_then_points_inside_package() -> None:
    # Given
    entries = ["template:standard"]

    # When
    dirs = resolve_dirs(entries)

    # Then
    assert dirs == [(BUILTIN_TEMPLATES_DIR / "standard").resolve()]
    assert (dirs[0] / "standard.schema").is_file()
