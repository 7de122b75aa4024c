"""Unit tests for field arrays.

Tests cover:
- Row identity across insert/remove/swap/move/replace
- Clamping and out-of-range errors
- Remapping of registered fields, errors and touched state on reshape
- Ids of arrays nested inside rows, and dotted row indices
"""

import asyncio

import pytest

from formstate.errors import IndexOutOfRangeError
from formstate.field_array import ROW_ID_KEY
from formstate.runtime import FormController


def make_form(rows=None):
    rows = rows if rows is not None else [{"name": "A"}, {"name": "B"}, {"name": "C"}]
    return FormController(default_values={"contacts": rows})


def names(form):
    return [row["name"] for row in form.get_values(nest=True)["contacts"]]


class TestRowIdentity:
    """Test stable row ids."""

    def test_ids_created_for_existing_rows(self):
        """Should generate one unique id per existing row."""
        contacts = make_form().field_array("contacts")
        assert len(contacts) == 3
        assert len(set(contacts.row_ids)) == 3

    def test_unknown_path_starts_empty(self):
        """Should auto-create an empty array state for a new path."""
        form = FormController()
        tags = form.field_array("tags")
        assert tags.row_ids == []
        assert tags.fields == []

    def test_handles_share_state(self):
        """Should return the same ids from every handle for a path."""
        form = make_form()
        assert form.field_array("contacts").row_ids == form.field_array("contacts").row_ids

    def test_swap_preserves_ids(self):
        """Should exchange ids along with the rows."""
        form = make_form()
        contacts = form.field_array("contacts")
        a, b, c = contacts.row_ids
        contacts.swap(0, 2)
        assert contacts.row_ids == [c, b, a]
        assert names(form) == ["C", "B", "A"]

    def test_move_preserves_ids(self):
        """Should move one row and shift the others."""
        form = make_form()
        contacts = form.field_array("contacts")
        a, b, c = contacts.row_ids
        contacts.move(0, 2)
        assert contacts.row_ids == [b, c, a]
        assert names(form) == ["B", "C", "A"]

    def test_insert_shifts_only_tail(self):
        """Should give the new row a fresh id and keep the others."""
        form = make_form()
        contacts = form.field_array("contacts")
        a, b, c = contacts.row_ids
        new_id = contacts.insert(1, {"name": "X"})
        assert contacts.row_ids == [a, new_id, b, c]
        assert new_id not in (a, b, c)
        assert names(form) == ["A", "X", "B", "C"]

    def test_insert_clamps(self):
        """Should clamp insert indices into range."""
        form = make_form([{"name": "A"}])
        contacts = form.field_array("contacts")
        contacts.insert(99, {"name": "Z"})
        contacts.insert(-5, {"name": "First"})
        assert names(form) == ["First", "A", "Z"]

    def test_append_and_prepend(self):
        """Should add rows at either end."""
        form = make_form([{"name": "B"}])
        contacts = form.field_array("contacts")
        contacts.append({"name": "C"})
        contacts.prepend({"name": "A"})
        assert names(form) == ["A", "B", "C"]

    def test_remove(self):
        """Should drop the removed rows' ids and keep the rest in order."""
        form = make_form()
        contacts = form.field_array("contacts")
        a, b, c = contacts.row_ids
        contacts.remove(1)
        assert contacts.row_ids == [a, c]
        contacts.remove([0, 1])
        assert contacts.row_ids == []
        assert form.get_values(nest=True)["contacts"] == []

    def test_remove_all(self):
        """Should remove every row when no index is given."""
        form = make_form()
        contacts = form.field_array("contacts")
        contacts.remove()
        assert len(contacts) == 0

    def test_replace_regenerates_ids(self):
        """Should give every replacement row a fresh id."""
        form = make_form()
        contacts = form.field_array("contacts")
        old = set(contacts.row_ids)
        new = contacts.replace([{"name": "Q"}, {"name": "R"}])
        assert contacts.row_ids == new
        assert not old & set(new)
        assert names(form) == ["Q", "R"]

    def test_fields(self):
        """Should pair rows with their ids."""
        form = FormController(default_values={"contacts": [{"name": "A"}], "tags": ["x"]})
        contacts = form.field_array("contacts")
        tags = form.field_array("tags")
        assert contacts.fields == [{"name": "A", ROW_ID_KEY: contacts.row_ids[0]}]
        assert tags.fields == [{ROW_ID_KEY: tags.row_ids[0], "value": "x"}]

    def test_inserted_values_are_copies(self):
        """Should not alias the inserted value."""
        form = FormController()
        row = {"name": "A"}
        form.field_array("contacts").append(row)
        row["name"] = "changed"
        assert form.get_values(nest=True) == {"contacts": [{"name": "A"}]}


class TestOutOfRange:
    """Test index validation."""

    def test_remove_out_of_range(self):
        """Should raise IndexOutOfRangeError for a missing row."""
        contacts = make_form().field_array("contacts")
        with pytest.raises(IndexOutOfRangeError) as exc_info:
            contacts.remove(3)
        assert exc_info.value.length == 3
        assert len(contacts) == 3

    def test_swap_and_move_out_of_range(self):
        """Should raise IndexOutOfRangeError without changing rows."""
        form = make_form()
        contacts = form.field_array("contacts")
        with pytest.raises(IndexOutOfRangeError):
            contacts.swap(0, 5)
        with pytest.raises(IndexOutOfRangeError):
            contacts.move(-1, 0)
        assert names(form) == ["A", "B", "C"]


class TestRemapping:
    """Test remapping of dependent state on reshape."""

    def test_fields_and_errors_follow_rows(self):
        """Should shift registered names and errors after a removal."""
        form = make_form()
        for index in range(3):
            form.register(f"contacts[{index}].name", {"required": True})
        form.set_error("contacts[1].name", message="Taken")
        form.field_array("contacts").remove(0)

        assert form.get_field("contacts[2].name") is None
        assert form.get_field("contacts[1].name").name == "contacts[1].name"
        assert form.get_error("contacts[0].name").message == "Taken"
        assert form.get_error("contacts[1].name") is None

    def test_touched_follows_rows(self):
        """Should move touched state with swapped rows."""
        form = make_form()
        asyncio.run(form.handle_blur("contacts[2].name"))
        form.field_array("contacts").swap(0, 2)
        assert form.form_state.touched == {"contacts": [{"name": True}]}

    def test_validation_uses_new_positions(self):
        """Should validate the row now at a registered position."""
        form = make_form([{"name": ""}, {"name": "B"}])
        form.register("contacts[0].name", {"required": True})
        form.register("contacts[1].name", {"required": True})
        contacts = form.field_array("contacts")
        contacts.swap(0, 1)
        assert asyncio.run(form.trigger_validation()) is False
        assert form.get_error("contacts[1].name").type == "required"
        assert form.get_error("contacts[0].name") is None

    def test_pending_round_discarded_on_reshape(self):
        """Should discard a validation that was in flight when rows moved."""
        form = make_form([{"name": "A"}, {"name": "B"}])

        async def scenario():
            started = asyncio.Event()
            gate = asyncio.Event()

            async def slow(value):
                started.set()
                await gate.wait()
                return "Rejected"

            form.register("contacts[0].name", {"validate": slow})
            pending = asyncio.ensure_future(form.trigger_validation("contacts[0].name"))
            await started.wait()
            form.field_array("contacts").swap(0, 1)
            gate.set()
            await pending

        asyncio.run(scenario())
        assert form.errors == {}

    def test_reshape_notifies_watchers(self):
        """Should notify subscribers of the array path."""
        form = make_form()
        seen = []
        form.subscribe("contacts", lambda path, value: seen.append(len(value)))
        form.field_array("contacts").remove(0)
        assert seen == [2]


class TestNestedArrays:
    """Test row ids of arrays nested inside rows."""

    def make_groups(self):
        form = FormController(default_values={
            "groups": [{"items": [1, 2]}, {"items": [3]}, {"items": [4, 5, 6]}],
        })
        inner = [form.field_array(f"groups[{index}].items").row_ids for index in range(3)]
        return form, inner

    def test_swap_carries_inner_ids(self):
        """Should move a nested array's ids along with its parent row."""
        form, (first, second, third) = self.make_groups()
        form.field_array("groups").swap(0, 2)
        assert form.field_array("groups[0].items").row_ids == third
        assert form.field_array("groups[1].items").row_ids == second
        assert form.field_array("groups[2].items").row_ids == first

    def test_remove_shifts_inner_ids(self):
        """Should shift nested ids up and never hand out a removed row's ids."""
        form, (first, second, third) = self.make_groups()
        form.field_array("groups").remove(0)
        assert form.field_array("groups[0].items").row_ids == second
        assert form.field_array("groups[1].items").row_ids == third
        assert form.field_array("groups[2].items").row_ids == []
        remaining = set(form.field_array("groups[0].items").row_ids)
        remaining |= set(form.field_array("groups[1].items").row_ids)
        assert not remaining & set(first)

    def test_replace_drops_inner_ids(self):
        """Should regenerate nested ids when every parent row is replaced."""
        form, (first, _, _) = self.make_groups()
        form.field_array("groups").replace([{"items": [7, 8]}])
        fresh = form.field_array("groups[0].items").row_ids
        assert len(fresh) == 2
        assert not set(fresh) & set(first)


class TestDottedIndices:
    """Test names that address rows with dotted numeric segments."""

    def test_dotted_and_bracketed_names_share_a_field(self):
        """Should register contacts.0.name and contacts[0].name as one field."""
        form = make_form()
        form.register("contacts.0.name", {"required": True})
        form.register("contacts[0].name", {"minLength": 2})
        field = form.get_field("contacts.0.name")
        assert field is form.get_field("contacts[0].name")
        assert field.name == "contacts[0].name"
        assert field.rules.required.value is True
        assert field.rules.min_length.value == 2

    def test_dotted_names_follow_rows(self):
        """Should shift and drop dotted row names on removal."""
        form = make_form()
        form.register("contacts.0.name", {"required": True})
        form.register("contacts.1.name")
        second = form.get_field("contacts.1.name")
        form.field_array("contacts").remove(0)
        assert form.get_field("contacts[0].name") is second
        assert form.get_field("contacts.1.name") is None

    def test_names_registered_before_rows_exist(self):
        """Should remap dotted names registered while the array was absent."""
        form = FormController()
        form.register("tags.1", {"required": True})
        form.set_value("tags", ["a", "b"])
        form.field_array("tags").remove(0)
        field = form.get_field("tags.0")
        assert field is not None
        assert field.name == "tags[0]"
        assert form.get_field("tags.1") is None

    def test_dotted_array_path_shares_state(self):
        """Should give groups.0.items and groups[0].items the same row ids."""
        form = FormController(default_values={"groups": [{"items": [1, 2]}]})
        assert form.field_array("groups.0.items").row_ids == form.field_array("groups[0].items").row_ids
