"""Dirty and touched tracking.

Dirty is a structural comparison of the current values against a captured
baseline snapshot of the default values, not a union of per-field flags:
editing a field and then restoring its default leaves the form clean.
Touched is a tree of booleans in the shape of the values, set when a field
is blurred.
"""

import math
from copy import deepcopy
from typing import Any, Dict, Mapping, Optional

from formstate.paths import MISSING, get_value, set_value, unset_value
from formstate.types import FieldValues


def deep_equal(left: Any, right: Any) -> bool:
    """Structural equality for value trees.

    Mappings compare key-wise, sequences element-wise; NaN equals NaN and
    booleans never equal numbers.

    Examples:
        >>> deep_equal({"a": [1, float("nan")]}, {"a": [1, float("nan")]})
        True
        >>> deep_equal({"a": 1}, {"a": True})
        False
    """
    if isinstance(left, Mapping) and isinstance(right, Mapping):
        if left.keys() != right.keys():
            return False
        return all(deep_equal(left[key], right[key]) for key in left)
    if isinstance(left, (list, tuple)) and isinstance(right, (list, tuple)):
        if len(left) != len(right):
            return False
        return all(deep_equal(a, b) for a, b in zip(left, right))
    if isinstance(left, float) and isinstance(right, float):
        if math.isnan(left) and math.isnan(right):
            return True
    if isinstance(left, bool) != isinstance(right, bool):
        return False
    return left == right


class DirtyTouchedTracker:
    """Baseline snapshot plus touched tree for one form instance.

    Examples:
        >>> tracker = DirtyTouchedTracker({"name": "Ada"})
        >>> tracker.compute_dirty({"name": "Ada"})
        False
        >>> tracker.compute_dirty({"name": "Grace"})
        True
        >>> tracker.mark_touched("name")
        True
        >>> tracker.touched
        {'name': True}
    """

    def __init__(self, defaults: Optional[Mapping[str, Any]] = None):
        self._baseline: FieldValues = deepcopy(dict(defaults or {}))
        self._touched: Dict[str, Any] = {}

    @property
    def baseline(self) -> FieldValues:
        """Copy of the captured default snapshot."""
        return deepcopy(self._baseline)

    @property
    def touched(self) -> Dict[str, Any]:
        """Copy of the touched tree."""
        return deepcopy(self._touched)

    @property
    def touched_root(self) -> Dict[str, Any]:
        """The live touched tree (mutated in place by field-array reshapes)."""
        return self._touched

    def default_at(self, name: str, default: Any = None) -> Any:
        """Copy of the baseline value at name, or default when absent."""
        found = get_value(self._baseline, name, MISSING)
        return default if found is MISSING else deepcopy(found)

    def mark_touched(self, name: str) -> bool:
        """Mark name as touched.

        Returns:
            True if the field was not touched before
        """
        if self.is_touched(name):
            return False
        set_value(self._touched, name, True)
        return True

    def is_touched(self, name: str) -> bool:
        return get_value(self._touched, name) is True

    def clear_touched(self, name: str) -> None:
        unset_value(self._touched, name)

    def compute_dirty(
        self,
        current_values: Mapping[str, Any],
        baseline: Optional[Mapping[str, Any]] = None,
    ) -> bool:
        """Whether current_values structurally differ from the baseline."""
        return not deep_equal(current_values, self._baseline if baseline is None else baseline)

    def is_field_dirty(self, current_values: Mapping[str, Any], name: str) -> bool:
        return not deep_equal(get_value(current_values, name), get_value(self._baseline, name))

    def reset_baseline(self, new_defaults: Optional[Mapping[str, Any]] = None) -> None:
        """Capture a new baseline snapshot and clear the touched tree."""
        self._baseline = deepcopy(dict(new_defaults or {}))
        self._touched.clear()


__all__ = [
    "DirtyTouchedTracker",
    "deep_equal",
]
