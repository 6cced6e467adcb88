from __future__ import annotations

import json
from pathlib import Path

import pytest

from dialog_generator.schema import Schema, merge_required, process_schemas, type_name


def test_type_name_given_property_shapes_when_named_then_template_type_is_returned() -> None:
    # Given / When / Then
    assert type_name({"type": "string"}) == "string"
    assert type_name({"type": "string", "format": "date-time"}) == "datetime"
    assert type_name({"type": "string", "enum": ["a", "b"]}) == "enum"
    assert type_name({"type": "array", "items": {"type": "number"}}) == "number"
    assert type_name({}) == "object"


def test_schema_properties_given_nested_objects_when_listed_then_leaves_have_dotted_paths() -> None:
    # Given
    schema = Schema(
        Path("order.schema.json"),
        {
            "properties": {
                "name": {"type": "string"},
                "address": {"type": "object", "properties": {"city": {"type": "string"}}},
                "card": {"type": "object", "$templates": ["card"], "properties": {"number": {"type": "string"}}},
            }
        },
    )

    # When
    paths = [prop.path for prop in schema.schema_properties()]

    # Then
    assert schema.name == "order"
    assert schema.trigger_intent() == "order"
    assert paths == ["name", "address.city", "card"]


def test_entity_to_properties_given_shared_entities_when_mapped_then_properties_are_grouped() -> None:
    # Given
    schema = Schema(
        Path("s.json"),
        {
            "properties": {
                "age": {"type": "integer", "$entities": ["number"]},
                "height": {"type": "number", "$entities": ["number", "dimension"]},
            }
        },
    )

    # When
    mapping = schema.entity_to_properties()

    # Then
    assert mapping == {"number": ["age", "height"], "dimension": ["height"]}


def test_merge_required_given_overlapping_schemas_when_merged_then_main_wins_and_lists_union() -> None:
    # Given
    main = {"title": "mine", "$operations": ["Add()"], "properties": {"a": {"type": "string"}}}
    required = {"title": "theirs", "$operations": ["Add()", "Show()"], "properties": {"b": {"type": "number"}}}

    # When
    merge_required(main, required)

    # Then
    assert main["title"] == "mine"
    assert main["$operations"] == ["Add()", "Show()"]
    assert set(main["properties"]) == {"a", "b"}


def test_process_schemas_given_explicit_requires_when_loaded_then_required_schemas_and_dirs_are_merged(
    tmp_path: Path, write_files, feedback
) -> None:
    # Given
    templates = write_files(
        tmp_path / "templates",
        {
            "base.schema": json.dumps({"$requires": ["extra.schema"], "$templates": ["main"]}),
            "extra.schema": json.dumps({"$operations": ["Show()"]}),
        },
    )
    schema_path = write_files(
        tmp_path,
        {"order.json": json.dumps({"$requires": ["base.schema"], "properties": {"name": {"type": "string"}}})},
    ) / "order.json"

    # When
    schema = process_schemas(schema_path, [templates], feedback)

    # Then
    assert feedback.errors == []
    assert schema.schema["$templates"] == ["main"]
    assert schema.schema["$operations"] == ["Show()"]
    assert schema.schema["$templateDirs"] == [str(templates)]
    assert schema.schema["$public"] == ["name"]
    assert schema.schema["$examples"] == {}


def test_process_schemas_given_missing_requires_when_loaded_then_only_explicit_ones_are_errors(
    tmp_path: Path, write_files, feedback
) -> None:
    # Given
    root = write_files(
        tmp_path,
        {
            "implicit.json": json.dumps({"properties": {}}),
            "explicit.json": json.dumps({"$requires": ["nowhere.schema"], "properties": {}}),
        },
    )

    # When
    process_schemas(root / "implicit.json", [root], feedback)
    implicit_errors = list(feedback.errors)
    process_schemas(root / "explicit.json", [root], feedback)

    # Then
    assert implicit_errors == []
    assert feedback.errors == ["Missing required schema nowhere.schema"]


def test_process_schemas_given_non_object_json_when_loaded_then_value_error_is_raised(
    tmp_path: Path, write_files, feedback
) -> None:
    # Given
    root = write_files(tmp_path, {"list.json": "[1, 2]"})

    # When / Then
    with pytest.raises(ValueError):
        process_schemas(root / "list.json", [root], feedback)


def test_schema_properties_given_entities_filled_on_property_when_listed_again_then_tree_sees_the_change() -> None:
    # Given
    schema = Schema(Path("s.json"), {"properties": {"age": {"type": "integer"}}})
    prop = schema.schema_properties()[0]

    # When
    prop.node["$entities"] = ["number"]

    # Then
    assert prop.node is schema.schema["properties"]["age"]
    assert schema.schema_properties()[0].node["$entities"] == ["number"]
    assert schema.entity_to_properties() == {"number": ["age"]}
