"""Path addressing for nested value trees.

A field name such as ``"contacts[0].address.city"`` is parsed into a tuple of
tokens (``("contacts", 0, "address", "city")``): bare segments are mapping keys
and bracketed integers are sequence indices. Quoted bracket segments
(``'meta["a.b"]'``) address mapping keys containing reserved characters.

The same resolver serves the value tree, the error tree and the touched tree.
Writes create the intermediate containers the path calls for (bracket segment
means list, bare segment means dict) and leave sibling branches untouched.

Examples:
    >>> tree = {}
    >>> set_value(tree, "a.b[1].c", 5)
    {'a': {'b': [None, {'c': 5}]}}
    >>> get_value(tree, "a.b[1].c")
    5
    >>> get_value(tree, "a.x.y") is None
    True
"""

import re
from functools import lru_cache
from typing import Any, Dict, Iterable, Sequence, Tuple, Union

from formstate.errors import InvalidPathError
from formstate.types import PathToken


class _Missing:
    """Marker for an absent path, distinct from an explicit None value."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()

PathLike = Union[str, Sequence[PathToken]]

_KEY_RE = re.compile(r"[^.\[\]]+")
_NEEDS_QUOTING_RE = re.compile(r"[.\[\]]")
_QUOTES = "\"'"


def parse_path(path: PathLike) -> Tuple[PathToken, ...]:
    """Parse a field name into path tokens.

    Args:
        path: Field name string, or an already-parsed token sequence

    Returns:
        Tuple of str (mapping key) and int (sequence index) tokens

    Raises:
        InvalidPathError: If the field name is empty or malformed
    """
    if isinstance(path, tuple):
        return path
    if isinstance(path, list):
        return tuple(path)
    if not isinstance(path, str):
        raise InvalidPathError(path, "field name must be a string")
    return _parse(path)


@lru_cache(maxsize=1024)
def _parse(path: str) -> Tuple[PathToken, ...]:
    if not path:
        raise InvalidPathError(path, "field name is empty")

    tokens = []
    pos = 0
    length = len(path)
    after_dot = False

    while pos < length:
        char = path[pos]
        if char == "[":
            if after_dot:
                raise InvalidPathError(path, f"empty segment before '[' at position {pos}")
            quote = path[pos + 1:pos + 2]
            if quote and quote in _QUOTES:
                # Quoted keys may hold any character, so only quote + "]" closes them
                end = path.find(quote + "]", pos + 2)
                if end == -1:
                    raise InvalidPathError(path, f"unclosed quoted key at position {pos}")
                tokens.append(path[pos + 2:end])
                pos = end + 2
            else:
                end = path.find("]", pos)
                if end == -1:
                    raise InvalidPathError(path, f"unclosed '[' at position {pos}")
                inner = path[pos + 1:end]
                if not inner.isdigit():
                    raise InvalidPathError(path, f"invalid index {inner!r}")
                tokens.append(int(inner))
                pos = end + 1
        elif char == ".":
            raise InvalidPathError(path, f"empty segment at position {pos}")
        elif char == "]":
            raise InvalidPathError(path, f"unmatched ']' at position {pos}")
        else:
            match = _KEY_RE.match(path, pos)
            tokens.append(match.group())
            pos = match.end()

        after_dot = False
        if pos < length:
            if path[pos] == ".":
                pos += 1
                after_dot = True
                if pos == length:
                    raise InvalidPathError(path, "trailing '.'")
            elif path[pos] != "[":
                raise InvalidPathError(path, f"unexpected {path[pos]!r} at position {pos}")

    return tuple(tokens)


def join_path(tokens: Iterable[PathToken]) -> str:
    """Render path tokens back into a field name.

    Keys that would not survive parse_path as bare segments are quoted.

    Examples:
        >>> join_path(("contacts", 0, "name"))
        'contacts[0].name'
        >>> join_path(("meta", "a.b"))
        'meta["a.b"]'

    Raises:
        InvalidPathError: If a key holds both closing sequences '"]' and "']"
    """
    parts = []
    for token in tokens:
        if isinstance(token, int):
            parts.append(f"[{token}]")
        elif _NEEDS_QUOTING_RE.search(token) or not token:
            parts.append(_quote(token))
        elif parts:
            parts.append(f".{token}")
        else:
            parts.append(token)
    return "".join(parts)


def _quote(key: str) -> str:
    for quote in _QUOTES:
        if quote + "]" not in key:
            return f"[{quote}{key}{quote}]"
    raise InvalidPathError(key, "key cannot be quoted")


def canonical_path(tree: Any, path: PathLike) -> str:
    """Render path with numeric segments that address sequences as indices.

    ``contacts.0.name`` and ``contacts[0].name`` address the same leaf when
    ``contacts`` holds a list; both render as ``contacts[0].name``. Numeric
    keys of mappings are left as keys.

    Examples:
        >>> canonical_path({"contacts": [{"name": "A"}]}, "contacts.0.name")
        'contacts[0].name'
        >>> canonical_path({"codes": {"0": "x"}}, "codes.0")
        'codes.0'
    """
    tokens = []
    node = tree
    for token in parse_path(path):
        if isinstance(token, str) and token.isdigit() and isinstance(node, (list, tuple)):
            token = int(token)
        tokens.append(token)
        node = _child(node, token)
    return join_path(tokens)


def _index(node: list, token: PathToken) -> int:
    if isinstance(token, int):
        return token
    if token.isdigit():
        return int(token)
    raise InvalidPathError(token, "sequence nodes can only be addressed by index")


def _child(node: Any, token: PathToken) -> Any:
    if isinstance(node, dict):
        return node.get(token, MISSING)
    if isinstance(node, (list, tuple)):
        if isinstance(token, str) and not token.isdigit():
            return MISSING
        index = _index(node, token)
        return node[index] if index < len(node) else MISSING
    return MISSING


def _assign(node: Any, token: PathToken, value: Any) -> None:
    if isinstance(node, dict):
        node[token] = value
        return
    index = _index(node, token)
    if index >= len(node):
        node.extend([None] * (index + 1 - len(node)))
    node[index] = value


def _remove(node: Any, token: PathToken) -> None:
    if isinstance(node, dict):
        node.pop(token, None)
        return
    index = _index(node, token)
    if index < len(node):
        node[index] = None
        # Trailing holes are dropped; earlier holes keep sibling indices stable
        while node and node[-1] is None:
            node.pop()


def get_value(tree: Any, path: PathLike, default: Any = None) -> Any:
    """Resolve the value at path, or default when any segment is missing.

    Never raises for missing intermediate nodes; only a malformed path
    raises InvalidPathError.
    """
    node = tree
    for token in parse_path(path):
        node = _child(node, token)
        if node is MISSING:
            return default
    return node


def has_value(tree: Any, path: PathLike) -> bool:
    """Whether every segment of path exists in tree."""
    return get_value(tree, path, MISSING) is not MISSING


def set_value(tree: Any, path: PathLike, value: Any) -> Any:
    """Write value at path, creating intermediate containers as needed.

    Mutates and returns tree. Indices beyond the current sequence length
    extend the sequence, filling the gap with None.
    """
    tokens = parse_path(path)
    node = tree
    for token, next_token in zip(tokens, tokens[1:]):
        child = _child(node, token)
        if isinstance(child, tuple):
            child = list(child)
            _assign(node, token, child)
        elif not isinstance(child, (dict, list)):
            child = [] if isinstance(next_token, int) else {}
            _assign(node, token, child)
        node = child
    _assign(node, tokens[-1], value)
    return tree


def unset_value(tree: Any, path: PathLike) -> Any:
    """Remove the leaf at path and prune intermediate containers left empty.

    Mutates and returns tree. Containers that still hold siblings are kept.
    """
    tokens = parse_path(path)
    parents = []
    node = tree
    for token in tokens[:-1]:
        child = _child(node, token)
        if not isinstance(child, (dict, list)):
            return tree
        parents.append((node, token))
        node = child
    _remove(node, tokens[-1])

    for parent, token in reversed(parents):
        child = _child(parent, token)
        if isinstance(child, (dict, list)) and not child:
            _remove(parent, token)
        else:
            break
    return tree


def is_path_prefix(prefix: PathLike, path: PathLike) -> bool:
    """Whether prefix addresses path itself or one of its ancestors."""
    prefix_tokens = parse_path(prefix)
    path_tokens = parse_path(path)
    return path_tokens[:len(prefix_tokens)] == prefix_tokens


def flatten(tree: Any, prefix: Tuple[PathToken, ...] = ()) -> Dict[str, Any]:
    """Flatten a nested tree into a field name to leaf value mapping.

    Empty containers are reported as leaves so no part of the tree is lost.

    Examples:
        >>> flatten({"a": {"b": [1, {"c": 2}]}})
        {'a.b[0]': 1, 'a.b[1].c': 2}
    """
    result: Dict[str, Any] = {}
    if isinstance(tree, dict) and tree:
        items: Iterable = tree.items()
    elif isinstance(tree, (list, tuple)) and tree:
        items = enumerate(tree)
    else:
        if prefix:
            result[join_path(prefix)] = tree
        return result

    for token, child in items:
        result.update(flatten(child, prefix + (token,)))
    return result


__all__ = [
    "MISSING",
    "PathLike",
    "parse_path",
    "join_path",
    "canonical_path",
    "get_value",
    "has_value",
    "set_value",
    "unset_value",
    "is_path_prefix",
    "flatten",
]
