from __future__ import annotations

from dialog_generator.engine import TemplateEngine
from dialog_generator.expander import expand_schema
from dialog_generator.scope import Scope


def test_expand_schema_given_unresolvable_expression_when_lenient_then_left_in_place_silently(feedback) -> None:
    # Given
    schema = {"properties": {"name": {"title": "${ label }"}}}

    # When
    expanded = expand_schema(schema, {}, "", False, False, TemplateEngine(), feedback)

    # Then
    assert expanded == schema
    assert feedback.events == []


def test_expand_schema_given_unresolvable_expression_when_strict_then_exactly_one_error(feedback) -> None:
    # Given
    schema = {"properties": {"name": {"title": "${ label }"}}}

    # When
    expanded = expand_schema(schema, {}, "", False, True, TemplateEngine(), feedback)

    # Then
    assert expanded["properties"]["name"]["title"] == "${ label }"
    assert len(feedback.errors) == 1


def test_expand_schema_given_property_expressions_when_expanded_then_property_path_and_schema_are_in_scope(
    feedback,
) -> None:
    # Given
    schema = {
        "properties": {
            "address": {
                "type": "object",
                "title": "${ property_schema.type }",
                "properties": {"city": {"title": "Ask ${ property }"}},
            }
        }
    }

    # When
    expanded = expand_schema(schema, Scope(), "", False, True, TemplateEngine(), feedback)

    # Then
    assert feedback.errors == []
    assert expanded["properties"]["address"]["title"] == "object"
    assert expanded["properties"]["address"]["properties"]["city"]["title"] == "Ask address.city"


def test_expand_schema_given_parameters_when_expanded_then_they_are_copied_verbatim(feedback) -> None:
    # Given
    schema = {"$parameters": {"greeting": "${ not_evaluated }"}, "title": "${ greeting }"}

    # When
    expanded = expand_schema(schema, {"greeting": "hi"}, "", False, True, TemplateEngine(), feedback)

    # Then
    assert expanded["$parameters"] == {"greeting": "${ not_evaluated }"}
    assert expanded["title"] == "hi"


def test_expand_schema_given_top_level_expression_array_when_expanded_then_values_are_merged(feedback) -> None:
    # Given
    schema = {
        "$public": ["name", "${ extra }"],
        "$examples": ["${ first }", "${ second }"],
    }
    scope = {"extra": ["name", "age"], "first": {"a": 1}, "second": {"b": 2}}

    # When
    expanded = expand_schema(schema, scope, "", False, True, TemplateEngine(), feedback)

    # Then
    assert expanded["$public"] == ["name", "age"]
    assert expanded["$examples"] == {"a": 1, "b": 2}


def test_expand_schema_given_expanded_tree_when_expanded_again_then_nothing_changes(feedback) -> None:
    # Given
    schema = {"properties": {"name": {"title": "${ property }", "$entities": ["utterance"]}}}
    once = expand_schema(schema, {}, "", False, True, TemplateEngine(), feedback)

    # When
    twice = expand_schema(once, {}, "", False, True, TemplateEngine(), feedback)

    # Then
    assert once == {"properties": {"name": {"title": "name", "$entities": ["utterance"]}}}
    assert twice == once
    assert feedback.errors == []
