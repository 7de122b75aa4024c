"""Core type definitions for the formstate engine.

This module defines the fundamental types shared by every component:
- ValidationMode: When validation runs during interaction
- CriteriaMode: Whether rule evaluation stops at the first failure
- ErrorType: Rule categories carried by FieldError.type
- FormStateFlag: Names of the observable aggregate form-state flags
- InteractionEvent: Kinds of binding events that may trigger validation

These types form the contract between a binding layer and the form
runtime, ensuring consistent error reporting and validation timing.
"""

from enum import Enum
from typing import Any, Callable, Dict, List, Union

from typing_extensions import TypeAlias


FieldValues: TypeAlias = Dict[str, Any]
"""A nested mapping/sequence tree holding the live form values."""

ValidateResult: TypeAlias = Union[str, bool, None]
"""Outcome of a custom validate rule: False or a message fails, True/None passes."""

Validator: TypeAlias = Callable[[Any], Any]
"""A custom validate rule; may return a ValidateResult or an awaitable of one."""

PathToken: TypeAlias = Union[str, int]
"""A single parsed path segment: mapping key (str) or sequence index (int)."""

FieldNames: TypeAlias = Union[str, List[str]]


# Key under which form-level errors (e.g. a failing external validator) are stored
ROOT_ERROR_KEY = "root"

# Wildcard path for watching the whole value tree
WATCH_ALL = "*"


class ValidationMode(str, Enum):
    """When validation runs in response to interaction events."""
    ON_BLUR = "onBlur"
    ON_CHANGE = "onChange"
    ON_SUBMIT = "onSubmit"


class CriteriaMode(str, Enum):
    """How many failing rules are collected per field.

    FIRST_ERROR stops at the first failing rule; ALL runs every rule and
    records each failure in FieldError.types.
    """
    FIRST_ERROR = "firstError"
    ALL = "all"


class ErrorType(str, Enum):
    """Built-in error categories for FieldError.type.

    Named validate rules use their own key as the type, and schema
    resolvers may report their own keywords (e.g. "type", "enum").
    """
    REQUIRED = "required"
    MIN = "min"
    MAX = "max"
    MIN_LENGTH = "minLength"
    MAX_LENGTH = "maxLength"
    PATTERN = "pattern"
    VALIDATE = "validate"
    MANUAL = "manual"
    SCHEMA = "schema"


class FormStateFlag(str, Enum):
    """Observable aggregate form-state flags."""
    DIRTY = "dirty"
    IS_SUBMITTED = "isSubmitted"
    SUBMIT_COUNT = "submitCount"
    TOUCHED = "touched"
    IS_SUBMITTING = "isSubmitting"
    IS_VALID = "isValid"


class InteractionEvent(str, Enum):
    """Binding events that may trigger field validation."""
    CHANGE = "change"
    BLUR = "blur"


__all__ = [
    "FieldValues",
    "ValidateResult",
    "Validator",
    "PathToken",
    "FieldNames",
    "ROOT_ERROR_KEY",
    "WATCH_ALL",
    "ValidationMode",
    "CriteriaMode",
    "ErrorType",
    "FormStateFlag",
    "InteractionEvent",
]
