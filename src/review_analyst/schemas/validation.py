"""Schema validation for model output and response-schema relaxation.

Results are validated with pydantic. The JSON schema sent upstream is derived
from the same type but with range and count constraints stripped, so the model
is not over-constrained by bounds that pydantic enforces after parsing.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Protocol

from pydantic import TypeAdapter, ValidationError

# Keys that bound a value's range or a collection's size
CONSTRAINT_KEYS = frozenset(
    {
        "minLength",
        "maxLength",
        "minimum",
        "maximum",
        "exclusiveMinimum",
        "exclusiveMaximum",
        "minItems",
        "maxItems",
        "multipleOf",
    }
)


@dataclass(frozen=True)
class ValidationOutcome:
    """Result of validating a raw model response."""

    ok: bool
    value: Any = None
    issues: List[str] = field(default_factory=list)


class SchemaValidator(Protocol):
    """Validates a raw upstream result against a response schema."""

    def validate(self, raw: Any, schema: Any) -> ValidationOutcome: ...


def format_validation_issues(error: ValidationError) -> List[str]:
    """Render pydantic errors as ``path: message`` strings."""
    issues = []
    for detail in error.errors():
        location = ".".join(str(part) for part in detail.get("loc", ())) or "<root>"
        issues.append(f"{location}: {detail.get('msg', 'invalid value')}")
    return issues


class PydanticSchemaValidator:
    """SchemaValidator backed by ``pydantic.TypeAdapter``."""

    def __init__(self) -> None:
        self._adapters: Dict[Any, TypeAdapter] = {}

    def _adapter(self, schema: Any) -> TypeAdapter:
        try:
            adapter = self._adapters.get(schema)
        except TypeError:
            # Unhashable schema types are adapted on every call
            return TypeAdapter(schema)
        if adapter is None:
            adapter = TypeAdapter(schema)
            self._adapters[schema] = adapter
        return adapter

    def validate(self, raw: Any, schema: Any) -> ValidationOutcome:
        try:
            value = self._adapter(schema).validate_python(raw)
        except ValidationError as e:
            return ValidationOutcome(ok=False, issues=format_validation_issues(e))
        return ValidationOutcome(ok=True, value=value)


def _strip_value(value: Any) -> Any:
    if isinstance(value, list):
        return [
            strip_json_schema_constraints(item) if isinstance(item, dict) else item
            for item in value
        ]
    if isinstance(value, dict):
        return strip_json_schema_constraints(value)
    return value


def strip_json_schema_constraints(schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Recursively drop range/count constraints from a JSON schema.

    ``"type": "integer"`` is relaxed to ``"number"``; the stricter result
    schema still validates integrality after parsing.
    """
    result: Dict[str, Any] = {}
    for key, value in schema.items():
        if key in CONSTRAINT_KEYS:
            continue
        if key == "type" and value == "integer":
            result[key] = "number"
            continue
        result[key] = _strip_value(value)
    return result


def build_response_schema(
    schema: Any, hint: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    """JSON schema sent upstream for ``schema``; an explicit hint wins."""
    source = hint if hint is not None else TypeAdapter(schema).json_schema()
    return strip_json_schema_constraints(source)
