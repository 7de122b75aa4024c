"""formstate: a client-side form-state engine.

formstate tracks the live values, validation errors and interaction state of a
set of named, possibly nested, possibly array-shaped form fields, without
owning a rendering layer. It provides:
- Dotted/indexed path addressing into arbitrary nested values
- Composable sync and async validation rules with race-safe rounds
- An error tree shaped like the form values
- Structural dirty tracking against a default snapshot, plus touched tracking
- Field arrays with stable row identity across insert/remove/swap/move
- Path watchers and a lazily computed aggregate form state

Basic usage:
    >>> import asyncio
    >>> from formstate.runtime import FormController
    >>> form = FormController(default_values={"email": ""})
    >>> bind = form.register("email", {"required": "Email is required"})
    >>> result = asyncio.run(form.handle_submit(lambda values: None)())
    >>> result.is_valid
    False
    >>> form.get_error("email").message
    'Email is required'
"""

__version__ = "0.1.0"
__author__ = "formstate maintainers"

# Version info
VERSION = (0, 1, 0)

# Core exports
from formstate.errors import (
    ExternalValidatorError,
    FieldError,
    FormStateError,
    IndexOutOfRangeError,
    InvalidPathError,
)
from formstate.options import FormOptions, SchemaValidateOptions
from formstate.registry import ValidationOptions
from formstate.resolvers import JsonSchemaResolver, SchemaResolver
from formstate.runtime import FormController, SubmitResult
from formstate.types import CriteriaMode, ErrorType, ValidationMode

# Package metadata
__all__ = [
    "__version__",
    "VERSION",
    "FormController",
    "SubmitResult",
    "FormOptions",
    "SchemaValidateOptions",
    "ValidationOptions",
    "JsonSchemaResolver",
    "SchemaResolver",
    "FieldError",
    "FormStateError",
    "InvalidPathError",
    "IndexOutOfRangeError",
    "ExternalValidatorError",
    "ValidationMode",
    "CriteriaMode",
    "ErrorType",
]
