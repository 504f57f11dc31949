"""Response schema validation."""

from .validation import (
    CONSTRAINT_KEYS,
    PydanticSchemaValidator,
    SchemaValidator,
    ValidationOutcome,
    build_response_schema,
    format_validation_issues,
    strip_json_schema_constraints,
)

__all__ = [
    "CONSTRAINT_KEYS",
    "PydanticSchemaValidator",
    "SchemaValidator",
    "ValidationOutcome",
    "build_response_schema",
    "format_validation_issues",
    "strip_json_schema_constraints",
]
