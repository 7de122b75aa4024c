"""Field arrays: ordered rows with stable identity.

Every array-typed field path gets a FieldArrayState holding one opaque row id
per row. Ids are generated when a row is inserted and travel with the row on
swap/move, so a binding layer can keep logically unchanged rows mounted
while their indices change.

Reshaping an array also moves everything keyed by row index: the values
themselves, registered row field names (``contacts[2].name`` becomes
``contacts[1].name`` after removing row 0), the error tree, the touched
tree and the row ids of arrays nested inside the rows. In-flight validation
rounds for the array's rows are superseded, since their results would land
on the wrong row.
"""

import logging
import uuid
from copy import deepcopy
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Union

from formstate.error_tree import ErrorTree
from formstate.errors import IndexOutOfRangeError
from formstate.paths import (
    get_value,
    is_path_prefix,
    join_path,
    parse_path,
    set_value,
    unset_value,
)
from formstate.registry import FieldRegistry
from formstate.tracking import DirtyTouchedTracker
from formstate.types import FieldValues
from formstate.validation import ValidationRounds

logger = logging.getLogger(__name__)

# Key under which a row's id is exposed by FieldArray.fields
ROW_ID_KEY = "id"


def generate_row_id() -> str:
    """Generate a new, never reused row id."""
    return uuid.uuid4().hex


@dataclass
class FieldArrayState:
    """Row ids of one field array, in row order."""
    path: str
    row_ids: List[str] = field(default_factory=list)


class FieldArrayManager:
    """Sole mutator of array shape for one form instance.

    Args:
        values: The form's live value tree
        registry: Field registry whose row field names are remapped
        errors: Error tree whose row entries are remapped
        tracker: Tracker whose touched rows are remapped
        rounds: Validation rounds superseded for reshaped rows
        on_change: Called with the array path after every reshape
    """

    def __init__(
        self,
        values: FieldValues,
        registry: FieldRegistry,
        errors: ErrorTree,
        tracker: DirtyTouchedTracker,
        rounds: ValidationRounds,
        on_change: Optional[Callable[[str], None]] = None,
    ):
        self._values = values
        self._registry = registry
        self._errors = errors
        self._tracker = tracker
        self._rounds = rounds
        self._on_change = on_change
        self._states: Dict[str, FieldArrayState] = {}

    def state(self, path: str) -> FieldArrayState:
        """FieldArrayState for path, created on first use.

        Ids are generated for rows already present in the values, and the
        id list is kept in step with the row count if values were replaced
        wholesale through set_value.
        """
        parse_path(path)
        state = self._states.get(path)
        if state is None:
            state = FieldArrayState(path=path)
            self._states[path] = state
        rows = self._rows(path)
        if len(state.row_ids) < len(rows):
            state.row_ids.extend(generate_row_id() for _ in range(len(rows) - len(state.row_ids)))
        elif len(state.row_ids) > len(rows):
            del state.row_ids[len(rows):]
        return state

    def paths(self) -> List[str]:
        return list(self._states)

    def row_ids(self, path: str) -> List[str]:
        return list(self.state(path).row_ids)

    def rows(self, path: str) -> List[Any]:
        self.state(path)
        return deepcopy(self._rows(path))

    def insert(self, path: str, index: int, value: Any) -> str:
        """Insert a row at index (clamped into range).

        Returns:
            The new row's id
        """
        length = len(self.state(path).row_ids)
        index = max(0, min(index, length))
        order: List[Optional[int]] = list(range(length))
        order.insert(index, None)
        return self._reshape(path, order, [value])[0]

    def append(self, path: str, value: Any) -> str:
        return self.insert(path, len(self.state(path).row_ids), value)

    def prepend(self, path: str, value: Any) -> str:
        return self.insert(path, 0, value)

    def remove(self, path: str, indexes: Union[int, Sequence[int], None] = None) -> None:
        """Remove the rows at indexes, or every row when indexes is None.

        Raises:
            IndexOutOfRangeError: If any index addresses a missing row
        """
        length = len(self.state(path).row_ids)
        if indexes is None:
            removed = set(range(length))
        else:
            if isinstance(indexes, int):
                indexes = [indexes]
            for index in indexes:
                self._check_index(path, index, length)
            removed = set(indexes)
        self._reshape(path, [i for i in range(length) if i not in removed], [])

    def swap(self, path: str, index_a: int, index_b: int) -> None:
        """Exchange two rows, keeping their ids.

        Raises:
            IndexOutOfRangeError: If either index addresses a missing row
        """
        length = len(self.state(path).row_ids)
        self._check_index(path, index_a, length)
        self._check_index(path, index_b, length)
        order: List[Optional[int]] = list(range(length))
        order[index_a], order[index_b] = order[index_b], order[index_a]
        self._reshape(path, order, [])

    def move(self, path: str, from_index: int, to_index: int) -> None:
        """Move one row to a new position, keeping its id.

        Raises:
            IndexOutOfRangeError: If either index addresses a missing row
        """
        length = len(self.state(path).row_ids)
        self._check_index(path, from_index, length)
        self._check_index(path, to_index, length)
        order: List[Optional[int]] = list(range(length))
        order.insert(to_index, order.pop(from_index))
        self._reshape(path, order, [])

    def replace(self, path: str, values: Iterable[Any]) -> List[str]:
        """Replace every row; all rows get fresh ids.

        Returns:
            The new row ids
        """
        self.state(path)
        new_rows = list(values)
        return self._reshape(path, [None] * len(new_rows), new_rows)

    def reset(self) -> None:
        """Regenerate ids for every known array from the current values."""
        for state in self._states.values():
            state.row_ids = [generate_row_id() for _ in self._rows(state.path)]

    def _rows(self, path: str) -> List[Any]:
        rows = get_value(self._values, path)
        if isinstance(rows, (list, tuple)):
            return list(rows)
        return []

    def _check_index(self, path: str, index: int, length: int) -> None:
        if not 0 <= index < length:
            raise IndexOutOfRangeError(path, index, length)

    def _reshape(self, path: str, order: List[Optional[int]], inserted: List[Any]) -> List[str]:
        """Rebuild the array so that new row k is old row order[k].

        None entries in order take the next value from inserted and a fresh
        id. Returns the ids of the inserted rows.
        """
        state = self._states[path]
        old_rows = self._rows(path)
        fresh_values = iter(inserted)
        new_rows: List[Any] = []
        new_ids: List[str] = []
        created: List[str] = []

        for old_index in order:
            if old_index is None:
                new_rows.append(deepcopy(next(fresh_values)))
                row_id = generate_row_id()
                created.append(row_id)
                new_ids.append(row_id)
            else:
                new_rows.append(old_rows[old_index])
                new_ids.append(state.row_ids[old_index])

        set_value(self._values, path, new_rows)
        state.row_ids = new_ids
        _reorder_rows(self._errors.root, path, order)
        _reorder_rows(self._tracker.touched_root, path, order)
        self._remap_fields(path, order)

        logger.debug("Reshaped field array %s to %d rows", path, len(new_rows))
        if self._on_change is not None:
            self._on_change(path)
        return created

    def _remap_fields(self, path: str, order: List[Optional[int]]) -> None:
        new_index = {old: new for new, old in enumerate(order) if old is not None}
        depth = len(parse_path(path))
        renames: Dict[str, str] = {}
        dropped: List[str] = []
        affected: List[str] = []

        for name in self._registry.names_under(path):
            tokens = parse_path(name)
            row = _row_index(tokens, depth)
            if row is None:
                continue
            affected.append(name)
            target = new_index.get(row)
            if target is None:
                dropped.append(name)
            else:
                renamed = _with_index(path, target, tokens[depth + 1:])
                if renamed != name:
                    renames[name] = renamed

        self._rounds.supersede(affected)
        self._registry.unregister(dropped)
        self._registry.rename(renames)
        self._remap_nested_arrays(path, depth, new_index)

    def _remap_nested_arrays(self, path: str, depth: int, new_index: Dict[int, int]) -> None:
        """Carry the states of arrays nested inside rows along with their rows.

        States under a removed row are dropped so their ids are never
        reused by the row that takes its index.
        """
        states: Dict[str, FieldArrayState] = {}
        for key, state in self._states.items():
            tokens = parse_path(key)
            row = _row_index(tokens, depth) if is_path_prefix(path, tokens) else None
            if row is None:
                states[key] = state
                continue
            target = new_index.get(row)
            if target is None:
                logger.debug("Dropped nested field array %s", key)
                continue
            state.path = _with_index(path, target, tokens[depth + 1:])
            states[state.path] = state
        self._states = states


def _row_index(tokens: Sequence[Any], depth: int) -> Optional[int]:
    """Row index addressed by the token at depth, if there is one."""
    if len(tokens) <= depth:
        return None
    token = tokens[depth]
    if isinstance(token, int):
        return token
    if token.isdigit():
        return int(token)
    return None


def _with_index(path: str, index: int, rest: Sequence[Any]) -> str:
    return join_path(parse_path(path) + (index,) + tuple(rest))


def _reorder_rows(tree: Dict[str, Any], path: str, order: List[Optional[int]]) -> None:
    rows = get_value(tree, path)
    if not isinstance(rows, list):
        return
    reordered = [
        rows[old_index] if old_index is not None and old_index < len(rows) else None
        for old_index in order
    ]
    while reordered and reordered[-1] is None:
        reordered.pop()
    if reordered:
        set_value(tree, path, reordered)
    else:
        unset_value(tree, path)


class FieldArray:
    """Handle for one field array, bound to a form's FieldArrayManager.

    Examples:
        >>> from formstate.runtime import FormController
        >>> form = FormController()
        >>> contacts = form.field_array("contacts")
        >>> first = contacts.insert(0, {"name": "A"})
        >>> second = contacts.insert(1, {"name": "B"})
        >>> contacts.swap(0, 1)
        >>> contacts.row_ids == [second, first]
        True
    """

    def __init__(self, manager: FieldArrayManager, path: str):
        self._manager = manager
        self.path = path
        manager.state(path)

    @property
    def row_ids(self) -> List[str]:
        return self._manager.row_ids(self.path)

    @property
    def fields(self) -> List[Dict[str, Any]]:
        """Rows paired with their ids.

        Mapping rows are returned with an extra "id" key; other rows as
        {"id": ..., "value": ...}.
        """
        result = []
        for row_id, row in zip(self._manager.row_ids(self.path), self._manager.rows(self.path)):
            if isinstance(row, dict):
                result.append({**row, ROW_ID_KEY: row_id})
            else:
                result.append({ROW_ID_KEY: row_id, "value": row})
        return result

    def __len__(self) -> int:
        return len(self._manager.row_ids(self.path))

    def insert(self, index: int, value: Any) -> str:
        return self._manager.insert(self.path, index, value)

    def append(self, value: Any) -> str:
        return self._manager.append(self.path, value)

    def prepend(self, value: Any) -> str:
        return self._manager.prepend(self.path, value)

    def remove(self, indexes: Union[int, Sequence[int], None] = None) -> None:
        self._manager.remove(self.path, indexes)

    def swap(self, index_a: int, index_b: int) -> None:
        self._manager.swap(self.path, index_a, index_b)

    def move(self, from_index: int, to_index: int) -> None:
        self._manager.move(self.path, from_index, to_index)

    def replace(self, values: Iterable[Any]) -> List[str]:
        return self._manager.replace(self.path, values)


__all__ = [
    "FieldArrayState",
    "FieldArrayManager",
    "FieldArray",
    "generate_row_id",
    "ROW_ID_KEY",
]
