"""Tests for response validation and upstream schema relaxation."""

from typing import List

from pydantic import BaseModel, Field

from review_analyst.schemas.validation import (
    PydanticSchemaValidator,
    build_response_schema,
    strip_json_schema_constraints,
)


class Finding(BaseModel):
    title: str = Field(min_length=3, max_length=80)
    line: int = Field(ge=1)


class ReviewResult(BaseModel):
    summary: str
    findings: List[Finding] = Field(max_length=5)


class TestPydanticSchemaValidator:
    """Test cases for the pydantic-backed validator."""

    def test_valid_payload(self):
        validator = PydanticSchemaValidator()
        outcome = validator.validate(
            {"summary": "ok", "findings": [{"title": "Null deref", "line": 12}]},
            ReviewResult,
        )

        assert outcome.ok is True
        assert isinstance(outcome.value, ReviewResult)
        assert outcome.value.findings[0].line == 12
        assert outcome.issues == []

    def test_invalid_payload_reports_paths(self):
        validator = PydanticSchemaValidator()
        outcome = validator.validate(
            {"summary": "ok", "findings": [{"title": "x", "line": 0}]}, ReviewResult
        )

        assert outcome.ok is False
        assert outcome.value is None
        assert any(issue.startswith("findings.0.title:") for issue in outcome.issues)
        assert any(issue.startswith("findings.0.line:") for issue in outcome.issues)

    def test_missing_root_field(self):
        outcome = PydanticSchemaValidator().validate({}, ReviewResult)
        assert outcome.ok is False
        assert any(issue.startswith("summary:") for issue in outcome.issues)

    def test_non_model_types(self):
        validator = PydanticSchemaValidator()
        assert validator.validate([1, 2], List[int]).value == [1, 2]
        assert validator.validate("nope", List[int]).ok is False

    def test_adapters_are_cached(self):
        validator = PydanticSchemaValidator()
        validator.validate({"summary": "a", "findings": []}, ReviewResult)
        validator.validate({"summary": "b", "findings": []}, ReviewResult)
        assert len(validator._adapters) == 1


class TestSchemaRelaxation:
    """Test cases for constraint stripping."""

    def test_strips_nested_constraints(self):
        schema = {
            "type": "object",
            "properties": {
                "score": {"type": "integer", "minimum": 0, "maximum": 100},
                "tags": {
                    "type": "array",
                    "items": {"type": "string", "maxLength": 10},
                    "minItems": 1,
                },
            },
            "anyOf": [{"type": "integer", "multipleOf": 5}],
        }

        stripped = strip_json_schema_constraints(schema)

        assert stripped == {
            "type": "object",
            "properties": {
                "score": {"type": "number"},
                "tags": {"type": "array", "items": {"type": "string"}},
            },
            "anyOf": [{"type": "number"}],
        }

    def test_does_not_mutate_input(self):
        schema = {"type": "integer", "minimum": 1}
        strip_json_schema_constraints(schema)
        assert schema == {"type": "integer", "minimum": 1}

    def test_build_response_schema_from_model(self):
        schema = build_response_schema(ReviewResult)
        finding = schema["$defs"]["Finding"]

        assert finding["properties"]["line"]["type"] == "number"
        assert "minimum" not in finding["properties"]["line"]
        assert "minLength" not in finding["properties"]["title"]
        assert "maxItems" not in schema["properties"]["findings"]

    def test_explicit_hint_wins(self):
        hint = {"type": "object", "properties": {"n": {"type": "integer", "maximum": 3}}}
        assert build_response_schema(ReviewResult, hint) == {
            "type": "object",
            "properties": {"n": {"type": "number"}},
        }
