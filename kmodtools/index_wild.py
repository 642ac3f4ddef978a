"""Wildcard search over a module index whose keys may be shell patterns."""

from __future__ import annotations

import re
from functools import lru_cache

from kmodtools.index import Index, IndexNode, IndexValue, insert_value

_WILDCARDS = "*?["


@lru_cache(maxsize=512)
def _compile(pattern: str) -> re.Pattern[str]:
    """Translate a shell pattern into a regular expression (no flags, escapes on)."""
    out: list[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        i += 1
        if c == "*":
            out.append(".*")
        elif c == "?":
            out.append(".")
        elif c == "\\" and i < n:
            out.append(re.escape(pattern[i]))
            i += 1
        elif c == "[":
            j = i
            negate = False
            if j < n and pattern[j] in "!^":
                negate = True
                j += 1
            items: list[str] = []
            first = True
            while j < n and (pattern[j] != "]" or first):
                first = False
                ch = pattern[j]
                if ch == "\\" and j + 1 < n:
                    j += 1
                    ch = pattern[j]
                if j + 2 < n and pattern[j + 1] == "-" and pattern[j + 2] != "]":
                    hi = pattern[j + 2]
                    if ord(ch) <= ord(hi):
                        items.append(f"{re.escape(ch)}-{re.escape(hi)}")
                    j += 3
                else:
                    items.append(re.escape(ch))
                    j += 1
            if j >= n:
                out.append(r"\[")
                continue
            if items:
                out.append("[" + ("^" if negate else "") + "".join(items) + "]")
            else:
                out.append("." if negate else "(?!)")
            i = j + 1
        else:
            out.append(re.escape(c))
    return re.compile("".join(out), re.DOTALL)


def _fnmatch(pattern: str, name: str) -> bool:
    return _compile(pattern).fullmatch(name) is not None


def _add_all_values(node: IndexNode, out: list[IndexValue]) -> None:
    for v in node.values:
        insert_value(out, v.value, v.priority)


def _search_all(
    node: IndexNode, start: int, pattern: str, subkey: str, out: list[IndexValue]
) -> None:
    """Walk a subtree whose path holds a wildcard, matching stored keys as patterns."""
    pattern += node.prefix[start:]
    for ch, child in node.children():
        _search_all(child, 0, pattern + ch, subkey, out)
    if node.values and _fnmatch(pattern, subkey):
        _add_all_values(node, out)


def search_wild(index: Index, key: str) -> list[IndexValue]:
    """Return the values of every key in ``index`` that matches ``key``.

    Keys stored in the index are treated as shell patterns; the result is
    ordered by priority.
    """
    out: list[IndexValue] = []
    node = index.root()
    while node is not None:
        for j, ch in enumerate(node.prefix):
            if ch in _WILDCARDS:
                _search_all(node, j, "", key[j:], out)
                return out
            if j >= len(key) or ch != key[j]:
                return out
        key = key[len(node.prefix):]

        for wildcard in _WILDCARDS:
            child = node.child(wildcard)
            if child is not None:
                _search_all(child, 0, wildcard, key, out)

        if not key:
            _add_all_values(node, out)
            return out

        node = node.child(key[0])
        key = key[1:]
    return out