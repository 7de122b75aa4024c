"""Unit tests for path addressing.

Tests cover:
- Field name parsing (keys, indices, quoted keys) and malformed names
- Reading missing and present values
- Writing with container creation, sequence extension and sibling safety
- Removing leaves with pruning of emptied containers
- Prefix checks and flattening
"""

import pytest

from formstate.errors import InvalidPathError
from formstate.paths import (
    MISSING,
    canonical_path,
    flatten,
    get_value,
    has_value,
    is_path_prefix,
    join_path,
    parse_path,
    set_value,
    unset_value,
)


class TestParsePath:
    """Test parsing field names into path tokens."""

    def test_dotted_and_indexed(self):
        """Should split keys on dots and read bracketed indices as ints."""
        assert parse_path("contacts[0].address.city") == ("contacts", 0, "address", "city")

    def test_single_key(self):
        """Should parse a plain key into a single token."""
        assert parse_path("name") == ("name",)

    def test_consecutive_indices(self):
        """Should parse nested sequence indices."""
        assert parse_path("grid[1][2]") == ("grid", 1, 2)

    def test_quoted_key(self):
        """Should read quoted bracket segments as mapping keys."""
        assert parse_path('meta["a.b"].c') == ("meta", "a.b", "c")

    def test_token_sequence_passthrough(self):
        """Should accept already-parsed token sequences."""
        assert parse_path(["a", 0]) == ("a", 0)

    def test_malformed_names(self):
        """Should raise InvalidPathError for malformed field names."""
        for bad in ["", ".a", "a.", "a..b", "a[", "a]", "a[x]", "a.[0]", "a[0]b"]:
            with pytest.raises(InvalidPathError) as exc_info:
                parse_path(bad)
            assert exc_info.value.path == bad

    def test_non_string_name(self):
        """Should reject names that are neither strings nor token sequences."""
        with pytest.raises(InvalidPathError):
            parse_path(42)


class TestJoinPath:
    """Test rendering tokens back into field names."""

    def test_round_trip(self):
        """Should render parsed names back unchanged."""
        for name in ["a", "a.b", "a.b[2].c", "rows[0][1]"]:
            assert join_path(parse_path(name)) == name

    def test_quotes_reserved_characters(self):
        """Should quote keys that contain dots or brackets."""
        assert join_path(("meta", "a.b")) == 'meta["a.b"]'
        assert parse_path(join_path(("meta", "a.b"))) == ("meta", "a.b")

    def test_quoted_keys_with_closing_brackets(self):
        """Should keep keys containing ']' or quote characters intact."""
        assert parse_path('["a]"]') == ("a]",)
        assert parse_path("m['x]y'].z") == ("m", "x]y", "z")
        for key in ["a]", "[0]", 'say "hi"]', "", "it's"]:
            assert parse_path(join_path(("meta", key))) == ("meta", key)
        assert join_path(("meta", 'a"]b')) == "meta['a\"]b']"

    def test_unquotable_key(self):
        """Should reject a key holding both quote closers."""
        with pytest.raises(InvalidPathError):
            join_path(("a\"]'b']",))

    def test_unclosed_quoted_key(self):
        """Should reject a quoted key without its closing quote."""
        with pytest.raises(InvalidPathError):
            parse_path('a["b]')


class TestCanonicalPath:
    """Test rendering numeric segments as indices."""

    def test_dotted_index_on_sequence(self):
        """Should render a dotted index into a list as a bracketed index."""
        tree = {"contacts": [{"name": "A"}]}
        assert canonical_path(tree, "contacts.0.name") == "contacts[0].name"
        assert canonical_path(tree, "contacts[0].name") == "contacts[0].name"

    def test_numeric_mapping_key_kept(self):
        """Should leave numeric keys of mappings as keys."""
        assert canonical_path({"codes": {"7": "x"}}, "codes.7") == "codes.7"

    def test_missing_branch_kept(self):
        """Should leave segments under a missing branch as written."""
        assert canonical_path({}, "rows.0.name") == "rows.0.name"


class TestGetValue:
    """Test resolving values at a path."""

    def test_nested_value(self):
        """Should resolve keys and indices."""
        tree = {"contacts": [{"name": "A"}, {"name": "B"}]}
        assert get_value(tree, "contacts[1].name") == "B"

    def test_missing_intermediate(self):
        """Should return None (or the default) for missing segments."""
        tree = {"a": {"b": 1}}
        assert get_value(tree, "a.x.y") is None
        assert get_value(tree, "a.x.y", "fallback") == "fallback"
        assert get_value(tree, "a.b.c") is None

    def test_index_beyond_length(self):
        """Should treat an index past the end as missing."""
        assert get_value({"items": [1]}, "items[3]", MISSING) is MISSING

    def test_explicit_none_is_present(self):
        """Should distinguish an explicit None from an absent key."""
        assert has_value({"a": None}, "a") is True
        assert has_value({}, "a") is False


class TestSetValue:
    """Test writing values at a path."""

    def test_creates_containers_by_syntax(self):
        """Should create a list for index segments and a dict for keys."""
        tree = set_value({}, "a.b[1].c", 5)
        assert tree == {"a": {"b": [None, {"c": 5}]}}

    def test_extends_sequences_with_holes(self):
        """Should extend a sequence, filling the gap with None."""
        tree = {"items": ["x"]}
        set_value(tree, "items[3]", "y")
        assert tree == {"items": ["x", None, None, "y"]}

    def test_preserves_siblings(self):
        """Should leave sibling branches untouched."""
        tree = {"a": {"x": 1, "list": [1, 2]}, "b": 2}
        set_value(tree, "a.y", 3)
        set_value(tree, "a.list[0]", 9)
        assert tree == {"a": {"x": 1, "y": 3, "list": [9, 2]}, "b": 2}

    def test_round_trip(self):
        """Should read back exactly what was written."""
        tree = {}
        for path, value in [("a", 1), ("b.c", [1, 2]), ("d[2].e", {"f": None}), ("g[0][1]", "x")]:
            set_value(tree, path, value)
            assert get_value(tree, path) == value

    def test_replaces_scalar_intermediate(self):
        """Should replace a scalar standing where a container is needed."""
        tree = {"a": 1}
        set_value(tree, "a.b", 2)
        assert tree == {"a": {"b": 2}}

    def test_converts_tuples_to_lists(self):
        """Should turn a tuple on the path into a mutable list."""
        tree = {"pair": (1, {"x": 1})}
        set_value(tree, "pair[1].x", 2)
        assert tree == {"pair": [1, {"x": 2}]}

    def test_rejects_empty_path(self):
        """Should raise InvalidPathError for an empty path."""
        with pytest.raises(InvalidPathError):
            set_value({}, "", 1)


class TestUnsetValue:
    """Test removing values at a path."""

    def test_prunes_empty_parents(self):
        """Should remove containers left empty by the removal."""
        tree = {"a": {"b": {"c": 1}}, "z": 1}
        unset_value(tree, "a.b.c")
        assert tree == {"z": 1}

    def test_keeps_non_empty_parents(self):
        """Should keep containers that still hold siblings."""
        tree = {"a": {"b": 1, "c": 2}}
        unset_value(tree, "a.b")
        assert tree == {"a": {"c": 2}}

    def test_sequence_holes(self):
        """Should leave a hole for inner elements and trim trailing ones."""
        tree = {"items": [1, 2, 3]}
        unset_value(tree, "items[1]")
        assert tree == {"items": [1, None, 3]}
        unset_value(tree, "items[2]")
        assert tree == {"items": [1]}

    def test_missing_path_is_noop(self):
        """Should ignore paths that do not exist."""
        tree = {"a": {"b": 1}}
        unset_value(tree, "a.x.y")
        unset_value(tree, "q")
        assert tree == {"a": {"b": 1}}


class TestPrefixAndFlatten:
    """Test prefix checks and flattening."""

    def test_is_path_prefix(self):
        """Should compare whole tokens, not string prefixes."""
        assert is_path_prefix("a", "a.b") is True
        assert is_path_prefix("a.b", "a.b") is True
        assert is_path_prefix("rows", "rows[0].name") is True
        assert is_path_prefix("a.b", "a") is False
        assert is_path_prefix("a", "ab") is False

    def test_flatten(self):
        """Should map every leaf path to its value."""
        tree = {"a": {"b": [1, {"c": 2}]}, "d": "x"}
        assert flatten(tree) == {"a.b[0]": 1, "a.b[1].c": 2, "d": "x"}

    def test_flatten_keeps_empty_containers(self):
        """Should report empty containers as leaves."""
        assert flatten({"tags": [], "meta": {}}) == {"tags": [], "meta": {}}

    def test_flatten_quotes_keys_with_brackets(self):
        """Should flatten keys containing ']' into names that resolve back."""
        tree = {"meta": {"a]": 1, "b": 2}}
        flat = flatten(tree)
        assert flat == {'meta["a]"]': 1, "meta.b": 2}
        for name, value in flat.items():
            assert get_value(tree, name) == value
