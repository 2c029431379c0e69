"""
Hierarchical requirement numbers ("1", "1.2", "1.2.3").

The dotted string is the stored and displayed form; ``segments`` is the decoded
form used for every structural question (depth, parent, child-of). Nothing in
here raises for malformed input: invalid numbers are treated as depth 0, sort
after valid ones and are never anyone's child.
"""

from __future__ import annotations

import re
from functools import cmp_to_key
from typing import Iterable, List, Sequence

_NUMBER_RE = re.compile(r"^\d+(\.\d+)*$")


def is_valid(value: str) -> bool:
    """Empty means "unassigned" and is valid; otherwise dotted digits only."""

    if not value:
        return True
    return bool(_NUMBER_RE.fullmatch(value))


def segments(value: str) -> List[int]:
    """Decode to integers, or [] for empty/invalid input."""

    if not value or not is_valid(value):
        return []
    return [int(part) for part in value.split(".")]


def _join(parts: Sequence[int]) -> str:
    return ".".join(str(p) for p in parts)


def depth(value: str) -> int:
    parts = segments(value)
    if not parts:
        return 0
    return len(parts) - 1


def compare(a: str, b: str) -> int:
    """
    Natural order: segment-wise numeric, missing trailing segments count as 0.

    Empty (and unparseable) numbers sort after everything else; two of them are equal.
    """

    a_parts = segments(a)
    b_parts = segments(b)
    if not a_parts and not b_parts:
        return 0
    if not a_parts:
        return 1
    if not b_parts:
        return -1

    for i in range(max(len(a_parts), len(b_parts))):
        a_val = a_parts[i] if i < len(a_parts) else 0
        b_val = b_parts[i] if i < len(b_parts) else 0
        if a_val != b_val:
            return -1 if a_val < b_val else 1
    return 0


sort_key = cmp_to_key(compare)


def sort_numbers(values: Iterable[str]) -> List[str]:
    return sorted(values, key=sort_key)


def suggest_next(previous: str) -> str:
    """"1.2" -> "1.3"; empty (or invalid) -> "1"."""

    parts = segments(previous)
    if not parts:
        return "1"
    parts[-1] += 1
    return _join(parts)


def indent(previous: str) -> str:
    """First child of the previous number: "1.2" -> "1.2.1"."""

    parts = segments(previous)
    if not parts:
        return "1"
    return _join([*parts, 1])


def outdent(current: str) -> str:
    """
    Drop the last segment and increment the new last one: "1.2.1" -> "1.3".

    A single-segment number cannot move up and is returned unchanged. Note this
    is not the inverse of ``indent``: indent("1") == "1.1" but outdent("1.1") == "2".
    """

    if not current:
        return "1"
    parts = segments(current)
    if len(parts) <= 1:
        return current
    parts.pop()
    parts[-1] += 1
    return _join(parts)


def parent_of(value: str) -> str:
    parts = segments(value)
    if len(parts) <= 1:
        return ""
    return _join(parts[:-1])


def is_child_of(child: str, parent: str) -> bool:
    """True for any descendant ("1.2.3" is a child of "1.2" and of "1")."""

    child_parts = segments(child)
    parent_parts = segments(parent)
    if not child_parts or not parent_parts:
        return False
    if len(child_parts) <= len(parent_parts):
        return False
    return child_parts[: len(parent_parts)] == parent_parts


def fill_missing_numbers(values: Sequence[str]) -> List[str]:
    """Assign ``suggest_next(previous)`` to every empty entry, keeping the rest verbatim."""

    filled: List[str] = []
    previous = ""
    for value in values:
        current = value or suggest_next(previous)
        filled.append(current)
        previous = current
    return filled
