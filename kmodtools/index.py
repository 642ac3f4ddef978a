"""Reader for the binary module index files (modules.dep.bin, modules.alias.bin, ...).

The file is a compressed radix tree.  Integers are 32-bit big endian and the
file starts with a magic number, a version word and the offset of the root
node.  Each node offset carries flags in its high nibble telling which of the
prefix, children and values fields are present.
"""

from __future__ import annotations

import bisect
import os
import struct
from dataclasses import dataclass, field
from typing import IO, Iterator

INDEX_MAGIC = 0xB007F457
INDEX_VERSION_MAJOR = 0x0002
INDEX_VERSION_MINOR = 0x0001
INDEX_VERSION = (INDEX_VERSION_MAJOR << 16) | INDEX_VERSION_MINOR

INDEX_CHILDMAX = 128

NODE_FLAGS = 0xF0000000
NODE_PREFIX = 0x80000000
NODE_VALUES = 0x40000000
NODE_CHILDS = 0x20000000
NODE_MASK = 0x0FFFFFFF

_HEADER = struct.Struct(">III")
_U32 = struct.Struct(">I")
_ENCODING = "latin-1"


class IndexFormatError(ValueError):
    """Raised when index data is not a valid module index."""


@dataclass(frozen=True)
class IndexValue:
    """One value stored under a key, ordered by priority."""

    priority: int
    value: str


def insert_value(values: list[IndexValue], value: str, priority: int) -> IndexValue:
    """Insert a value into a priority-sorted list, before equal priorities."""
    entry = IndexValue(priority, value)
    pos = bisect.bisect_left(values, priority, key=lambda v: v.priority)
    values.insert(pos, entry)
    return entry


@dataclass
class IndexNode:
    """A node of the index tree as stored in the file."""

    index: "Index" = field(repr=False)
    prefix: str
    first: int
    child_offsets: tuple[int, ...]
    values: list[IndexValue]

    @property
    def last(self) -> int:
        return self.first + len(self.child_offsets) - 1

    def child(self, ch: str | int) -> IndexNode | None:
        """Return the child reached through character ``ch``, if any."""
        code = ch if isinstance(ch, int) else ord(ch)
        pos = code - self.first
        if not self.child_offsets or pos < 0 or pos >= len(self.child_offsets):
            return None
        return self.index.read_node(self.child_offsets[pos])

    def children(self) -> Iterator[tuple[str, IndexNode]]:
        """Yield ``(character, node)`` for every present child, in order."""
        for pos, offset in enumerate(self.child_offsets):
            node = self.index.read_node(offset)
            if node is not None:
                yield chr(self.first + pos), node


class Index:
    """An index file held in memory."""

    def __init__(self, data: bytes) -> None:
        data = bytes(data)
        if len(data) < _HEADER.size:
            raise IndexFormatError("index file too short")
        magic, version, root_offset = _HEADER.unpack_from(data, 0)
        if magic != INDEX_MAGIC:
            raise IndexFormatError(
                f"magic check fail: {magic:x} instead of {INDEX_MAGIC:x}"
            )
        if version >> 16 != INDEX_VERSION_MAJOR:
            raise IndexFormatError(
                f"major version check fail: {version >> 16} instead of "
                f"{INDEX_VERSION_MAJOR}"
            )
        self.data = data
        self.version = version
        self.root_offset = root_offset

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> Index:
        """Read an index file from disk."""
        with open(path, "rb") as fp:
            return cls(fp.read())

    def _read_cstr(self, pos: int) -> tuple[str, int]:
        end = self.data.find(b"\0", pos)
        if end < 0:
            raise IndexFormatError("unterminated string")
        return self.data[pos:end].decode(_ENCODING), end + 1

    def read_node(self, offset: int) -> IndexNode | None:
        """Decode the node at a flagged offset, or None if it is absent or invalid."""
        pos = offset & NODE_MASK
        if pos == 0 or pos >= len(self.data):
            return None
        try:
            prefix = ""
            if offset & NODE_PREFIX:
                prefix, pos = self._read_cstr(pos)

            first = INDEX_CHILDMAX
            child_offsets: tuple[int, ...] = ()
            if offset & NODE_CHILDS:
                first, last = self.data[pos], self.data[pos + 1]
                pos += 2
                if first > last or first >= INDEX_CHILDMAX or last >= INDEX_CHILDMAX:
                    return None
                count = last - first + 1
                child_offsets = struct.unpack_from(f">{count}I", self.data, pos)
                pos += _U32.size * count

            values: list[IndexValue] = []
            if offset & NODE_VALUES:
                (count,) = _U32.unpack_from(self.data, pos)
                pos += _U32.size
                for _ in range(count):
                    (priority,) = _U32.unpack_from(self.data, pos)
                    value, pos = self._read_cstr(pos + _U32.size)
                    values.append(IndexValue(priority, value))
        except (struct.error, IndexError, IndexFormatError):
            return None
        return IndexNode(self, prefix, first, child_offsets, values)

    def root(self) -> IndexNode | None:
        """Return the root node."""
        return self.read_node(self.root_offset)

    def search(self, key: str) -> str | None:
        """Return the first value stored under exactly ``key``."""
        node = self.root()
        i = 0
        while node is not None:
            if not key.startswith(node.prefix, i):
                return None
            i += len(node.prefix)
            if i == len(key):
                return node.values[0].value if node.values else None
            node = node.child(key[i])
            i += 1
        return None

    def dump(self, out: IO[str], alias_prefix: bool = False) -> None:
        """Write every ``key value`` pair, one per line, in key order."""
        root = self.root()
        if root is None:
            return
        self._dump_node(root, "alias " if alias_prefix else "", out)

    def _dump_node(self, node: IndexNode, path: str, out: IO[str]) -> None:
        path += node.prefix
        for v in node.values:
            out.write(f"{path} {v.value}\n")
        for ch, child in node.children():
            self._dump_node(child, path + ch, out)