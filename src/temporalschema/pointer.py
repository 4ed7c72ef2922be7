"""JSON pointer resolution for ``$data`` references.

Two forms are understood:

- Relative JSON pointers, e.g. ``"1/finish"``: climb one level from the field
  being validated, then descend into ``finish``. ``"0"`` is the field itself
  and ``"1#"`` is the name (or index) of the field within its parent.
- Absolute JSON pointers, e.g. ``"/finish"``, resolved from the document root.
"""

from __future__ import annotations

import re
from collections.abc import Mapping, Sequence
from typing import Any

_RELATIVE_POINTER = re.compile(r"^(0|[1-9][0-9]*)(#|/.*)?$")


class _Missing:
    """Sentinel for a pointer with no target."""

    def __repr__(self) -> str:
        return "MISSING"

    def __bool__(self) -> bool:
        return False


MISSING: Any = _Missing()


def is_valid_pointer(pointer: str) -> bool:
    """Check pointer syntax without resolving it."""
    if pointer == "" or pointer.startswith("/"):
        return True
    return _RELATIVE_POINTER.match(pointer) is not None


def _unescape(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


def _step(node: Any, token: str) -> Any:
    if isinstance(node, Mapping):
        return node.get(token, MISSING)
    if isinstance(node, Sequence) and not isinstance(node, str):
        if not token.isdigit() or (len(token) > 1 and token.startswith("0")):
            return MISSING
        index = int(token)
        return node[index] if index < len(node) else MISSING
    return MISSING


def _walk(node: Any, segments: Sequence[str | int]) -> Any:
    for segment in segments:
        node = _step(node, str(segment))
        if node is MISSING:
            return MISSING
    return node


def resolve_pointer(
    document: Any,
    data_path: Sequence[str | int],
    pointer: str,
) -> Any:
    """Return the value the pointer addresses, or MISSING.

    Args:
        document: The whole instance being validated
        data_path: Segments from the document root to the current field
        pointer: Relative or absolute JSON pointer

    Raises:
        ValueError: If the pointer is syntactically invalid
    """
    if pointer == "" or pointer.startswith("/"):
        tokens = [_unescape(t) for t in pointer.split("/")[1:]]
        return _walk(document, tokens)

    match = _RELATIVE_POINTER.match(pointer)
    if match is None:
        raise ValueError(f"Invalid JSON pointer: {pointer!r}")

    levels = int(match.group(1))
    if levels > len(data_path):
        return MISSING
    base = list(data_path[: len(data_path) - levels])

    rest = match.group(2) or ""
    if rest == "#":
        return base[-1] if base else MISSING

    node = _walk(document, base)
    if node is MISSING:
        return MISSING
    tokens = [_unescape(t) for t in rest.split("/")[1:]]
    return _walk(node, tokens)
