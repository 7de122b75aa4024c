"""Field error records and exception types for the formstate engine.

Rule failures are data, not exceptions: every failing field is described by a
FieldError stored in the form's ErrorTree. Exceptions are reserved for misuse
of the API (malformed paths, out-of-range field-array indices) and for
wrapping failures of an external whole-form validator.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from formstate.types import ErrorType


@dataclass(frozen=True)
class FieldError:
    """Validation failure for a single field.

    Attributes:
        type: Failing rule name (an ErrorType value, a named validate key,
              or a schema keyword)
        message: Human-readable message; empty when the rule supplied none
        types: Optional - every failing rule name mapped to its message (or
               True when the rule had no message); only populated when the
               "all" criteria mode collected more than one failure
        is_manual: Whether the error was injected with set_error rather
                   than produced by a validation pass

    Examples:
        >>> err = FieldError(type=ErrorType.MIN, message="Must be 18 or older")
        >>> err.type
        'min'
    """
    type: str
    message: str = ""
    types: Optional[Dict[str, Union[str, bool]]] = None
    is_manual: bool = False

    def __post_init__(self):
        """Normalize enum members to their plain string value."""
        if isinstance(self.type, ErrorType):
            object.__setattr__(self, "type", self.type.value)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "type": self.type,
            "message": self.message,
        }
        if self.types is not None:
            result["types"] = dict(self.types)
        if self.is_manual:
            result["isManual"] = True
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldError":
        """Create FieldError from dict."""
        return cls(
            type=data["type"],
            message=data.get("message", ""),
            types=data.get("types"),
            is_manual=data.get("isManual", False),
        )


class FormStateError(Exception):
    """Base class for errors raised by the formstate engine."""


class InvalidPathError(FormStateError):
    """Raised when a field name cannot be parsed into a path.

    Attributes:
        path: The offending field name
        reason: Why the path was rejected
    """

    def __init__(self, path: Any, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"Invalid field path {path!r}: {reason}")


class IndexOutOfRangeError(FormStateError):
    """Raised when a field-array operation addresses a missing row.

    Attributes:
        path: Field-array path the operation targeted
        index: The requested index
        length: Number of rows at the time of the operation
    """

    def __init__(self, path: str, index: int, length: int):
        self.path = path
        self.index = index
        self.length = length
        super().__init__(
            f"Index {index} is out of range for field array '{path}' "
            f"with {length} row{'s' if length != 1 else ''}"
        )


class ExternalValidatorError(FormStateError):
    """Wraps an exception raised by an external whole-form validator.

    Attributes:
        cause: The original exception
    """

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"External validator failed: {cause}")


__all__ = [
    "FieldError",
    "FormStateError",
    "InvalidPathError",
    "IndexOutOfRangeError",
    "ExternalValidatorError",
]
