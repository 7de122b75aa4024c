"""Configuration for a form instance.

FormOptions collects the recognized options of a form: validation timing
(mode / re_validate_mode), criteria mode, default values, and an optional
external whole-form validator together with the options passed through to it.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from formstate.types import CriteriaMode, InteractionEvent, ValidationMode


@dataclass(frozen=True)
class SchemaValidateOptions:
    """Options passed through verbatim to an external whole-form validator.

    Attributes:
        strict: Reject values the schema cannot interpret (e.g. bad formats)
        abort_early: Stop at the first reported error
        strip_unknown: Drop values the schema does not declare
        recursive: Validate nested schemas
        context: Arbitrary context made available to the validator
    """
    strict: bool = False
    abort_early: bool = False
    strip_unknown: bool = False
    recursive: bool = True
    context: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization."""
        result: Dict[str, Any] = {
            "strict": self.strict,
            "abortEarly": self.abort_early,
            "stripUnknown": self.strip_unknown,
            "recursive": self.recursive,
        }
        if self.context is not None:
            result["context"] = self.context
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SchemaValidateOptions":
        """Create SchemaValidateOptions from dict."""
        return cls(
            strict=data.get("strict", False),
            abort_early=data.get("abortEarly", False),
            strip_unknown=data.get("stripUnknown", False),
            recursive=data.get("recursive", True),
            context=data.get("context"),
        )


@dataclass(frozen=True)
class FormOptions:
    """Recognized options for a FormController.

    Attributes:
        mode: When fields validate before the first submission
        re_validate_mode: When fields validate after submission, or while
                          they already hold an error
        criteria_mode: Stop at the first failing rule, or collect all
        default_values: Initial values; also the baseline for dirty checks
        resolver: Optional external whole-form validator (SchemaResolver)
        resolver_options: Options passed through to the resolver

    Examples:
        >>> options = FormOptions.from_dict({"mode": "onBlur", "validateCriteriaMode": "all"})
        >>> options.mode
        <ValidationMode.ON_BLUR: 'onBlur'>
        >>> options.criteria_mode
        <CriteriaMode.ALL: 'all'>
    """
    mode: ValidationMode = ValidationMode.ON_SUBMIT
    re_validate_mode: ValidationMode = ValidationMode.ON_CHANGE
    criteria_mode: CriteriaMode = CriteriaMode.FIRST_ERROR
    default_values: Dict[str, Any] = field(default_factory=dict)
    resolver: Optional[Any] = None
    resolver_options: SchemaValidateOptions = field(default_factory=SchemaValidateOptions)

    def __post_init__(self):
        """Normalize string enum values to enum types."""
        if isinstance(self.mode, str):
            object.__setattr__(self, "mode", ValidationMode(self.mode))
        if isinstance(self.re_validate_mode, str):
            object.__setattr__(self, "re_validate_mode", ValidationMode(self.re_validate_mode))
        if isinstance(self.criteria_mode, str):
            object.__setattr__(self, "criteria_mode", CriteriaMode(self.criteria_mode))
        if isinstance(self.resolver_options, dict):
            object.__setattr__(
                self, "resolver_options", SchemaValidateOptions.from_dict(self.resolver_options)
            )

    def active_mode(self, is_submitted: bool, has_error: bool) -> ValidationMode:
        """Mode governing interaction-triggered validation for a field."""
        if is_submitted or has_error:
            return self.re_validate_mode
        return self.mode

    def should_validate(
        self, event: InteractionEvent, is_submitted: bool, has_error: bool
    ) -> bool:
        """Whether an interaction event should trigger field validation.

        onChange validates on change events, onBlur on blur events and
        onSubmit never validates on interaction.
        """
        mode = self.active_mode(is_submitted, has_error)
        if mode == ValidationMode.ON_CHANGE:
            return event == InteractionEvent.CHANGE
        if mode == ValidationMode.ON_BLUR:
            return event == InteractionEvent.BLUR
        return False

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict for serialization (the resolver is not serialized)."""
        return {
            "mode": self.mode.value,
            "reValidateMode": self.re_validate_mode.value,
            "validateCriteriaMode": self.criteria_mode.value,
            "defaultValues": self.default_values,
            "validationSchemaOption": self.resolver_options.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FormOptions":
        """Create FormOptions from dict.

        Raises:
            ValueError: If a mode or criteria mode value is not recognized
        """
        resolver_options = data.get("validationSchemaOption")
        return cls(
            mode=ValidationMode(data.get("mode", ValidationMode.ON_SUBMIT.value)),
            re_validate_mode=ValidationMode(
                data.get("reValidateMode", ValidationMode.ON_CHANGE.value)
            ),
            criteria_mode=CriteriaMode(
                data.get("validateCriteriaMode", CriteriaMode.FIRST_ERROR.value)
            ),
            default_values=data.get("defaultValues") or {},
            resolver=data.get("validationSchema"),
            resolver_options=(
                SchemaValidateOptions.from_dict(resolver_options)
                if resolver_options
                else SchemaValidateOptions()
            ),
        )


__all__ = [
    "FormOptions",
    "SchemaValidateOptions",
]
