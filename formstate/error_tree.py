"""Error tree: per-field errors arranged in the shape of the form values.

Errors for ``"contacts[1].email"`` live at ``tree["contacts"][1]["email"]``,
so a consumer can read the errors of a nested object or a field array
without knowing the flat field names.
"""

from typing import Any, Dict, Iterable, Iterator, Mapping, Optional, Tuple

from formstate.errors import FieldError
from formstate.paths import flatten, get_value, parse_path, set_value, unset_value
from formstate.types import FieldNames


class ErrorTree:
    """Nested mapping/sequence structure holding FieldError leaves.

    Examples:
        >>> errors = ErrorTree()
        >>> errors.set_error("contacts[1].email", FieldError(type="required"))
        >>> errors.as_nested()
        {'contacts': [None, {'email': FieldError(type='required', message='', types=None, is_manual=False)}]}
        >>> errors.clear_error("contacts[1].email")
        >>> errors.is_empty()
        True
    """

    def __init__(self):
        self._tree: Dict[str, Any] = {}

    @property
    def root(self) -> Dict[str, Any]:
        """The live nested tree (mutated in place by field-array reshapes)."""
        return self._tree

    def set_error(self, name: str, error: FieldError) -> None:
        set_value(self._tree, name, error)

    def get_error(self, name: str) -> Optional[FieldError]:
        """FieldError recorded exactly at name, if any."""
        found = get_value(self._tree, name)
        return found if isinstance(found, FieldError) else None

    def record(self, name: str, error: Optional[FieldError]) -> None:
        """Apply one field's validation result.

        A passing result removes only the FieldError at name itself, so
        errors of nested fields validated separately are kept.
        """
        if error is not None:
            self.set_error(name, error)
        elif self.get_error(name) is not None:
            unset_value(self._tree, name)

    def clear_error(self, names: Optional[FieldNames] = None) -> None:
        """Clear the errors at (and below) the given names, or all errors."""
        if names is None:
            self.clear_all()
            return
        if isinstance(names, str):
            names = [names]
        for name in names:
            unset_value(self._tree, name)

    def clear_all(self) -> None:
        self._tree.clear()

    def replace(self, errors: Mapping[str, FieldError]) -> None:
        """Replace the whole tree with the given flat name to error mapping."""
        self._tree.clear()
        for name, error in errors.items():
            self.set_error(name, error)

    def iter_errors(self) -> Iterator[Tuple[str, FieldError]]:
        """Yield (field name, FieldError) pairs in tree order."""
        for name, leaf in flatten(self._tree).items():
            if isinstance(leaf, FieldError):
                yield name, leaf

    def is_empty(self) -> bool:
        return next(self.iter_errors(), None) is None

    def as_nested(self) -> Dict[str, Any]:
        """Copy of the nested tree; FieldError leaves are shared (immutable)."""
        return _copy_containers(self._tree)

    def retain(self, names: Iterable[str]) -> None:
        """Drop every error not recorded exactly at one of names."""
        keep = {parse_path(name) for name in names}
        for name, _ in list(self.iter_errors()):
            if parse_path(name) not in keep:
                unset_value(self._tree, name)

    def __len__(self) -> int:
        return sum(1 for _ in self.iter_errors())


def _copy_containers(node: Any) -> Any:
    if isinstance(node, dict):
        return {key: _copy_containers(child) for key, child in node.items()}
    if isinstance(node, list):
        return [_copy_containers(child) for child in node]
    return node


__all__ = [
    "ErrorTree",
]
