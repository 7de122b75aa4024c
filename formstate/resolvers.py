"""External whole-form validators.

A resolver replaces per-field rule evaluation with a single validation of the
whole value tree. It receives the nested values, the pass-through
SchemaValidateOptions and the criteria mode, and returns a mapping of field
name to FieldError (synchronously or as an awaitable).

JsonSchemaResolver is the bundled implementation: it validates against a
JSON Schema with the jsonschema library and translates each schema error into
a FieldError at the failing field's path.
"""

from typing import Any, Awaitable, Dict, List, Mapping, Union

import jsonschema
from jsonschema import Draft7Validator, FormatChecker
from typing_extensions import Protocol, runtime_checkable

from formstate.errors import FieldError
from formstate.options import SchemaValidateOptions
from formstate.paths import join_path
from formstate.types import ROOT_ERROR_KEY, CriteriaMode, ErrorType


@runtime_checkable
class SchemaResolver(Protocol):
    """Interface of an external whole-form validator."""

    def validate(
        self,
        values: Dict[str, Any],
        options: SchemaValidateOptions,
        criteria_mode: CriteriaMode,
    ) -> Union[Mapping[str, FieldError], Awaitable[Mapping[str, FieldError]]]:
        ...


# JSON Schema keywords reported under the engine's own rule names
KEYWORD_ERROR_TYPES: Dict[str, str] = {
    "required": ErrorType.REQUIRED.value,
    "minimum": ErrorType.MIN.value,
    "exclusiveMinimum": ErrorType.MIN.value,
    "maximum": ErrorType.MAX.value,
    "exclusiveMaximum": ErrorType.MAX.value,
    "minLength": ErrorType.MIN_LENGTH.value,
    "minItems": ErrorType.MIN_LENGTH.value,
    "maxLength": ErrorType.MAX_LENGTH.value,
    "maxItems": ErrorType.MAX_LENGTH.value,
    "pattern": ErrorType.PATTERN.value,
}


class JsonSchemaResolver:
    """JSON Schema backed whole-form validator.

    Honors abort_early (stop at the first schema error) and strict (check
    "format" keywords). strip_unknown, recursive and context are accepted
    for interface compatibility and have no JSON Schema counterpart.

    Attributes:
        schema: The JSON Schema definition to validate against

    Examples:
        >>> schema = {
        ...     "type": "object",
        ...     "properties": {"age": {"type": "number", "minimum": 18}},
        ...     "required": ["age"],
        ... }
        >>> resolver = JsonSchemaResolver(schema)
        >>> errors = resolver.validate({"age": 10}, SchemaValidateOptions(), CriteriaMode.FIRST_ERROR)
        >>> errors["age"].type
        'min'
    """

    def __init__(self, schema: Dict[str, Any]) -> None:
        """Initialize the resolver with a JSON Schema.

        Raises:
            jsonschema.SchemaError: If the provided schema is invalid
        """
        self.schema = schema
        Draft7Validator.check_schema(schema)

    def validate(
        self,
        values: Dict[str, Any],
        options: SchemaValidateOptions,
        criteria_mode: CriteriaMode,
    ) -> Dict[str, FieldError]:
        format_checker = FormatChecker() if options.strict else None
        validator = Draft7Validator(self.schema, format_checker=format_checker)

        collected: Dict[str, List[FieldError]] = {}
        for error in validator.iter_errors(values):
            path, field_error = self._translate_error(error)
            collected.setdefault(path, []).append(field_error)
            if options.abort_early:
                break

        result: Dict[str, FieldError] = {}
        for path, field_errors in collected.items():
            first = field_errors[0]
            if criteria_mode == CriteriaMode.ALL and len(field_errors) > 1:
                types: Dict[str, Union[str, bool]] = {}
                for item in field_errors:
                    types.setdefault(item.type, item.message or True)
                first = FieldError(type=first.type, message=first.message, types=types)
            result[path] = first
        return result

    def _translate_error(self, error: jsonschema.ValidationError):
        """Translate a jsonschema ValidationError into a (path, FieldError) pair."""
        path = join_path(error.absolute_path) if error.absolute_path else ""
        keyword = error.validator
        error_type = KEYWORD_ERROR_TYPES.get(keyword, keyword)

        # 'required' is reported on the parent object; move it to the missing property
        if keyword == "required":
            missing_prop = error.message.split("'")[1] if "'" in error.message else "field"
            full_path = join_path(tuple(error.absolute_path) + (missing_prop,))
            return full_path, FieldError(
                type=error_type,
                message=f"Field '{full_path}' is required but was not provided",
            )

        label = path or "value"
        if keyword in ("minLength", "maxLength", "minItems", "maxItems"):
            direction = "short" if keyword.startswith("min") else "long"
            limit = "Minimum" if keyword.startswith("min") else "Maximum"
            actual_length = len(error.instance) if error.instance else 0
            message = (
                f"Field '{label}' is too {direction}. "
                f"{limit} length: {error.validator_value}, got: {actual_length}"
            )
        elif keyword in ("minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum"):
            message = f"Field '{label}' violates {keyword} constraint: {error.validator_value}"
        elif keyword == "pattern":
            message = f"Field '{label}' does not match required pattern: {error.validator_value}"
        elif keyword == "type":
            message = (
                f"Field '{label}' has invalid type. Expected {error.validator_value}, "
                f"got {type(error.instance).__name__}"
            )
        elif keyword == "format":
            message = f"Field '{label}' has invalid format. Expected format: {error.validator_value}"
        elif keyword in ("enum", "const"):
            message = f"Field '{label}' has invalid value. Must be one of: {error.validator_value}"
        else:
            message = f"Field '{label}' validation failed: {error.message}"

        return path or ROOT_ERROR_KEY, FieldError(type=error_type, message=message)


__all__ = [
    "SchemaResolver",
    "JsonSchemaResolver",
    "KEYWORD_ERROR_TYPES",
]
