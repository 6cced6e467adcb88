from __future__ import annotations

import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from dialog_generator.cli import app
from dialog_generator.locator import TEMPLATE_DIRS_ENV

runner = CliRunner()


@pytest.fixture(autouse=True)
def builtin_templates_only(monkeypatch) -> None:
    monkeypatch.delenv(TEMPLATE_DIRS_ENV, raising=False)


def test_generate_command_given_schema_when_invoked_then_assets_are_written(sample_schema: Path, tmp_path: Path) -> None:
    # Given
    out_dir = tmp_path / "cli-out"

    # When
    result = runner.invoke(app, ["generate", str(sample_schema), "--output", str(out_dir), "--prefix", "lunch"])

    # Then
    assert result.exit_code == 0, result.output
    assert "Generating resources for sandwich" in result.output
    assert (out_dir / "lunch.json").is_file()
    assert (out_dir / "lunch.dialog").is_file()


def test_generate_command_given_broken_schema_when_invoked_then_exit_code_is_one(
    tmp_path: Path, write_files
) -> None:
    # Given
    root = write_files(tmp_path, {"pet.json": json.dumps({"properties": {"color": {"type": "color"}}})})

    # When
    result = runner.invoke(app, ["generate", str(root / "pet.json"), "-o", str(tmp_path / "out")])

    # Then
    assert result.exit_code == 1


def test_expand_property_command_given_json_definition_when_invoked_then_expanded_json_is_printed() -> None:
    # Given
    definition = json.dumps({"type": "string"})

    # When
    result = runner.invoke(app, ["expand-property", "name", definition])

    # Then
    assert result.exit_code == 0, result.output
    assert json.loads(result.output) == {"type": "string", "$entities": ["utterance"]}


def test_expand_property_command_given_invalid_json_when_invoked_then_usage_error() -> None:
    # Given
    definition = "{not json"

    # When
    result = runner.invoke(app, ["expand-property", "name", definition])

    # Then
    assert result.exit_code == 2


def test_check_command_given_generated_tree_when_one_file_edited_then_it_is_reported(
    sample_schema: Path, tmp_path: Path
) -> None:
    # Given
    out_dir = tmp_path / "out"
    assert runner.invoke(app, ["generate", str(sample_schema), "-o", str(out_dir)]).exit_code == 0
    edited = out_dir / "language-generation" / "en-us" / "name" / "sandwich-name.en-us.lg"
    edited.write_text(edited.read_text(encoding="utf-8") + "\n# Extra\n- extra\n", encoding="utf-8")

    # When
    result = runner.invoke(app, ["check", str(out_dir)])

    # Then
    assert result.exit_code == 0
    assert "modified   language-generation/en-us/name/sandwich-name.en-us.lg" in result.output
    assert "modified=1" in result.output
    assert "untracked=0" in result.output


def test_doctor_command_given_builtin_templates_when_invoked_then_generator_template_is_found() -> None:
    # Given / When
    result = runner.invoke(app, ["doctor"])

    # Then
    assert result.exit_code == 0
    assert "Template dir:" in result.output
    assert "Generator template:" in result.output
