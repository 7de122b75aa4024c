"""Field registry for the formstate engine.

The registry owns one Field descriptor per field name: the validation rules
attached at registration and the binding handle(s) a UI layer associated
with it. Names are validated as paths on registration and are unique.

Usage:
    >>> registry = FieldRegistry()
    >>> field = registry.register("age", ValidationOptions(required=True, min=18))
    >>> field.rules.min.value
    18
    >>> registry.register("age", {"max": 99}).rules.max.value
    99
    >>> registry.get_field("age").rules.min.value
    18
"""

import logging
import re
from dataclasses import dataclass, field, fields, replace
from typing import Any, Dict, Iterator, List, Mapping, Optional, Union

from formstate.paths import is_path_prefix, parse_path
from formstate.types import FieldNames, Validator

logger = logging.getLogger(__name__)

# Handle types whose bindings are collected as an option group
OPTION_HANDLE_TYPES = ("radio", "checkbox")


@dataclass(frozen=True)
class RuleValue:
    """A rule bound plus the message reported when the rule fails.

    Rules may be given bare (``18``) or as ``{"value": 18, "message": "..."}``.
    """
    value: Any
    message: str = ""

    @classmethod
    def of(cls, raw: Any) -> "RuleValue":
        """Normalize a bare value, a value/message mapping or a RuleValue."""
        if isinstance(raw, RuleValue):
            return raw
        if isinstance(raw, Mapping) and "value" in raw:
            return cls(value=raw["value"], message=raw.get("message", ""))
        return cls(value=raw)


@dataclass(frozen=True)
class SingleValidate:
    """A single custom validate rule."""
    validator: Validator


@dataclass(frozen=True)
class NamedValidate:
    """Several custom validate rules, each reported under its own name."""
    validators: Mapping[str, Validator]


ValidateRule = Union[SingleValidate, NamedValidate]


def _normalize_validate(raw: Any) -> Optional[ValidateRule]:
    if raw is None or isinstance(raw, (SingleValidate, NamedValidate)):
        return raw
    if callable(raw):
        return SingleValidate(raw)
    if isinstance(raw, Mapping):
        if not all(callable(fn) for fn in raw.values()):
            raise TypeError("every named validate rule must be callable")
        return NamedValidate(dict(raw))
    raise TypeError(f"validate must be a callable or a mapping of callables, got {type(raw).__name__}")


def _normalize_required(raw: Any) -> Optional[RuleValue]:
    if raw is None:
        return None
    if isinstance(raw, str):
        # A non-empty string is the failure message of an enabled rule
        return RuleValue(value=bool(raw), message=raw)
    return RuleValue.of(raw)


def _normalize_pattern(raw: Any) -> Optional[RuleValue]:
    if raw is None:
        return None
    rule = RuleValue.of(raw)
    if isinstance(rule.value, str):
        rule = RuleValue(value=re.compile(rule.value), message=rule.message)
    return rule


@dataclass(frozen=True)
class ValidationOptions:
    """Validation rules attached to a field.

    Each rule is optional; unset rules are None. Rules are normalized on
    construction, so callers may pass bare values or value/message mappings.

    Attributes:
        required: Value must not be empty (None, "", False, empty sequence)
        min: Lower numeric or date bound
        max: Upper numeric or date bound
        min_length: Minimum length of a string or sequence
        max_length: Maximum length of a string or sequence
        pattern: Regular expression the string value must match
        validate: SingleValidate or NamedValidate custom rule(s)
    """
    required: Optional[RuleValue] = None
    min: Optional[RuleValue] = None
    max: Optional[RuleValue] = None
    min_length: Optional[RuleValue] = None
    max_length: Optional[RuleValue] = None
    pattern: Optional[RuleValue] = None
    validate: Optional[ValidateRule] = None

    def __post_init__(self):
        """Normalize raw rule values."""
        object.__setattr__(self, "required", _normalize_required(self.required))
        for name in ("min", "max", "min_length", "max_length"):
            raw = getattr(self, name)
            if raw is not None:
                object.__setattr__(self, name, RuleValue.of(raw))
        object.__setattr__(self, "pattern", _normalize_pattern(self.pattern))
        object.__setattr__(self, "validate", _normalize_validate(self.validate))

    @property
    def is_empty(self) -> bool:
        """Whether no rule is set."""
        return all(getattr(self, f.name) is None for f in fields(self))

    def merge(self, other: Optional["ValidationOptions"]) -> "ValidationOptions":
        """Overlay the rules set in other; last write wins per rule."""
        if other is None:
            return self
        updates = {
            f.name: getattr(other, f.name)
            for f in fields(other)
            if getattr(other, f.name) is not None
        }
        return replace(self, **updates) if updates else self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ValidationOptions":
        """Create ValidationOptions from a camelCase rule mapping.

        Raises:
            TypeError: If data contains an unknown rule name
        """
        aliases = {"minLength": "min_length", "maxLength": "max_length"}
        kwargs = {aliases.get(key, key): value for key, value in data.items()}
        return cls(**kwargs)

    @classmethod
    def coerce(cls, rules: Any) -> "ValidationOptions":
        if rules is None:
            return cls()
        if isinstance(rules, ValidationOptions):
            return rules
        if isinstance(rules, Mapping):
            return cls.from_dict(rules)
        raise TypeError(f"expected ValidationOptions or mapping, got {type(rules).__name__}")


@dataclass
class Field:
    """Descriptor of one registered field.

    Attributes:
        name: Field name (path into the value tree)
        rules: Validation rules
        ref: Primary binding handle, if attached
        options: Option-group bindings (radio/checkbox handles)
    """
    name: str
    rules: ValidationOptions = field(default_factory=ValidationOptions)
    ref: Any = None
    options: List[Any] = field(default_factory=list)


class FieldRegistry:
    """Registry of Field descriptors keyed by unique field name."""

    def __init__(self):
        self._fields: Dict[str, Field] = {}

    def register(self, name: str, rules: Any = None) -> Field:
        """Create a Field, or merge new rules over an existing one.

        Args:
            name: Field name; must be a well-formed path
            rules: ValidationOptions or a camelCase rule mapping

        Returns:
            The registered Field

        Raises:
            InvalidPathError: If name is malformed
        """
        parse_path(name)
        options = ValidationOptions.coerce(rules)
        existing = self._fields.get(name)
        if existing is not None:
            existing.rules = existing.rules.merge(options)
            return existing

        registered = Field(name=name, rules=options)
        self._fields[name] = registered
        logger.debug("Registered field %s", name)
        return registered

    def attach(self, name: str, handle: Any) -> Field:
        """Associate a binding handle with a field, registering it if needed.

        Radio and checkbox handles join the field's option group (once per
        handle); any other handle replaces the primary ref. None detaches
        the primary ref.
        """
        target = self._fields.get(name) or self.register(name)
        if handle is None:
            target.ref = None
        elif getattr(handle, "type", None) in OPTION_HANDLE_TYPES:
            if not any(option is handle for option in target.options):
                target.options.append(handle)
        else:
            target.ref = handle
        return target

    def unregister(self, names: FieldNames) -> List[str]:
        """Remove fields by name; unknown names are ignored.

        Returns:
            Names that were actually removed
        """
        if isinstance(names, str):
            names = [names]
        removed = []
        for name in names:
            if self._fields.pop(name, None) is not None:
                removed.append(name)
                logger.debug("Unregistered field %s", name)
        return removed

    def rename(self, renames: Mapping[str, str]) -> None:
        """Move Fields to new names in one step (used when array rows shift).

        All old names are released before any new name is taken, so rows
        may trade places.
        """
        moved = [(self._fields.pop(old), new) for old, new in renames.items()]
        for descriptor, new in moved:
            descriptor.name = new
            self._fields[new] = descriptor

    def get_field(self, name: str) -> Optional[Field]:
        return self._fields.get(name)

    def names_under(self, prefix: str) -> List[str]:
        """Names of fields at prefix or nested below it."""
        return [name for name in self._fields if is_path_prefix(prefix, name)]

    def names(self) -> List[str]:
        return list(self._fields)

    def __contains__(self, name: object) -> bool:
        return name in self._fields

    def __iter__(self) -> Iterator[Field]:
        return iter(list(self._fields.values()))

    def __len__(self) -> int:
        return len(self._fields)


__all__ = [
    "RuleValue",
    "SingleValidate",
    "NamedValidate",
    "ValidateRule",
    "ValidationOptions",
    "Field",
    "FieldRegistry",
    "OPTION_HANDLE_TYPES",
]
