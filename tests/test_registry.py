"""Unit tests for the field registry.

Tests cover:
- Rule normalization (bare values, value/message pairs, validate variants)
- Registration, merging and unregistration
- Binding handles and option groups
- Bulk renames used by field arrays
"""

import re
from types import SimpleNamespace

import pytest

from formstate.errors import InvalidPathError
from formstate.registry import (
    FieldRegistry,
    NamedValidate,
    RuleValue,
    SingleValidate,
    ValidationOptions,
)


class TestValidationOptions:
    """Test rule normalization."""

    def test_bare_values(self):
        """Should wrap bare rule values in RuleValue with no message."""
        rules = ValidationOptions(min=18, max_length=10)
        assert rules.min == RuleValue(value=18)
        assert rules.max_length.message == ""

    def test_value_message_pairs(self):
        """Should read value/message mappings."""
        rules = ValidationOptions(min={"value": 18, "message": "Too young"})
        assert rules.min.value == 18
        assert rules.min.message == "Too young"

    def test_required_message_shorthand(self):
        """Should treat a string required rule as an enabled rule's message."""
        rules = ValidationOptions(required="Name is required")
        assert rules.required.value is True
        assert rules.required.message == "Name is required"

    def test_empty_required_message_disables_rule(self):
        """Should treat an empty string required rule as disabled."""
        rules = ValidationOptions(required="")
        assert rules.required.value is False
        merged = ValidationOptions(required=True).merge(rules)
        assert merged.required.value is False

    def test_pattern_compiled(self):
        """Should compile string patterns."""
        rules = ValidationOptions(pattern=r"^\d+$")
        assert isinstance(rules.pattern.value, re.Pattern)
        assert rules.pattern.value.search("123")

    def test_validate_variants(self):
        """Should tag a callable as Single and a mapping as Named."""
        def check(value):
            return True

        assert ValidationOptions(validate=check).validate == SingleValidate(check)
        named = ValidationOptions(validate={"a": check}).validate
        assert isinstance(named, NamedValidate)
        assert named.validators == {"a": check}

    def test_invalid_validate(self):
        """Should reject validate rules that are not callables."""
        with pytest.raises(TypeError):
            ValidationOptions(validate=42)
        with pytest.raises(TypeError):
            ValidationOptions(validate={"a": "not callable"})

    def test_from_dict_aliases(self):
        """Should accept camelCase rule names."""
        rules = ValidationOptions.from_dict({"minLength": 2, "maxLength": 5})
        assert rules.min_length.value == 2
        assert rules.max_length.value == 5

    def test_from_dict_unknown_rule(self):
        """Should reject unknown rule names."""
        with pytest.raises(TypeError):
            ValidationOptions.from_dict({"minimum": 2})

    def test_merge_last_write_wins(self):
        """Should overlay only the rules set in the newer options."""
        merged = ValidationOptions(required=True, min=18).merge(ValidationOptions(min=21))
        assert merged.min.value == 21
        assert merged.required.value is True

    def test_is_empty(self):
        """Should report whether any rule is set."""
        assert ValidationOptions().is_empty is True
        assert ValidationOptions(required=True).is_empty is False


class TestFieldRegistry:
    """Test field registration lifecycle."""

    def test_register_creates_field(self):
        """Should create a Field with normalized rules."""
        registry = FieldRegistry()
        field = registry.register("age", {"required": True, "min": 18})
        assert field.name == "age"
        assert field.rules.min.value == 18
        assert "age" in registry
        assert len(registry) == 1

    def test_reregister_merges(self):
        """Should merge rules on re-registration without duplicating the field."""
        registry = FieldRegistry()
        first = registry.register("age", {"required": True, "min": 18})
        second = registry.register("age", {"min": 21})
        assert first is second
        assert len(registry) == 1
        assert registry.get_field("age").rules.min.value == 21
        assert registry.get_field("age").rules.required.value is True

    def test_register_rejects_bad_name(self):
        """Should raise InvalidPathError for malformed names."""
        registry = FieldRegistry()
        with pytest.raises(InvalidPathError):
            registry.register("a..b")
        assert len(registry) == 0

    def test_unregister(self):
        """Should remove known fields and ignore unknown names."""
        registry = FieldRegistry()
        registry.register("a")
        registry.register("b")
        assert registry.unregister(["a", "missing"]) == ["a"]
        assert registry.unregister("missing") == []
        assert registry.names() == ["b"]

    def test_names_under(self):
        """Should list fields at or below a prefix."""
        registry = FieldRegistry()
        for name in ["rows[0].a", "rows[1].a", "rowsx", "other"]:
            registry.register(name)
        assert registry.names_under("rows") == ["rows[0].a", "rows[1].a"]

    def test_rename_allows_trading_places(self):
        """Should move fields in one step so two rows can swap names."""
        registry = FieldRegistry()
        first = registry.register("rows[0].a", {"min": 1})
        second = registry.register("rows[1].a", {"min": 2})
        registry.rename({"rows[0].a": "rows[1].a", "rows[1].a": "rows[0].a"})
        assert registry.get_field("rows[1].a") is first
        assert registry.get_field("rows[0].a") is second
        assert first.name == "rows[1].a"


class TestBindingHandles:
    """Test attaching binding handles."""

    def test_attach_primary_handle(self):
        """Should set and detach the primary ref."""
        registry = FieldRegistry()
        handle = SimpleNamespace(type="text")
        field = registry.attach("name", handle)
        assert field.ref is handle
        registry.attach("name", None)
        assert field.ref is None

    def test_option_group_idempotent(self):
        """Should collect radio handles once each."""
        registry = FieldRegistry()
        yes = SimpleNamespace(type="radio", value="yes")
        no = SimpleNamespace(type="radio", value="no")
        registry.attach("answer", yes)
        registry.attach("answer", yes)
        field = registry.attach("answer", no)
        assert field.options == [yes, no]
        assert field.ref is None
