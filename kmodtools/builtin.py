"""Lookup of modinfo strings for modules built into the kernel."""

from __future__ import annotations

import os

MODULES_BUILTIN_MODINFO = "modules.builtin.modinfo"


class BuiltinModinfoError(ValueError):
    """Raised when modules.builtin.modinfo holds malformed data."""


def parse_builtin_modinfo(data: bytes, modname: str) -> list[str]:
    """Return the ``key=value`` strings for ``modname`` from NUL-separated data.

    Entries of a module are contiguous; the search stops at the first entry
    of another module once a match was found.
    """
    chunks = data.split(b"\0")
    if chunks and chunks[-1] == b"":
        chunks.pop()

    wanted = modname + "."
    result: list[str] = []
    for chunk in chunks:
        line = chunk.decode("utf-8", errors="surrogateescape")
        if "." not in line:
            raise BuiltinModinfoError(
                "unexpected string without modname prefix"
            )
        if not line.startswith(wanted):
            if not result:
                continue
            break
        result.append(line.partition(".")[2])
    return result


def get_builtin_modinfo(dirname: str | os.PathLike[str], modname: str) -> list[str]:
    """Read modules.builtin.modinfo in ``dirname`` and return ``modname``'s strings."""
    path = os.path.join(os.fspath(dirname), MODULES_BUILTIN_MODINFO)
    with open(path, "rb") as fp:
        data = fp.read()
    return parse_builtin_modinfo(data, modname)