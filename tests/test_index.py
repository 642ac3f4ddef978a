import io
import struct

import pytest

from kmodtools.index import (
    INDEX_MAGIC,
    NODE_CHILDS,
    NODE_PREFIX,
    NODE_VALUES,
    Index,
    IndexFormatError,
    IndexValue,
    insert_value,
)


def _new_node():
    return {"children": {}, "values": []}


def _write_node(node, out):
    prefix = ""
    while not node["values"] and len(node["children"]) == 1:
        ch, child = next(iter(node["children"].items()))
        prefix += ch
        node = child
    child_offsets = {
        ch: _write_node(c, out) for ch, c in sorted(node["children"].items())
    }
    offset = len(out)
    flags = 0
    body = bytearray()
    if prefix:
        flags |= NODE_PREFIX
        body += prefix.encode() + b"\0"
    if child_offsets:
        flags |= NODE_CHILDS
        first = min(ord(c) for c in child_offsets)
        last = max(ord(c) for c in child_offsets)
        body += bytes([first, last])
        for code in range(first, last + 1):
            body += struct.pack(">I", child_offsets.get(chr(code), 0))
    if node["values"]:
        flags |= NODE_VALUES
        body += struct.pack(">I", len(node["values"]))
        for priority, value in node["values"]:
            body += struct.pack(">I", priority) + value.encode() + b"\0"
    out += body
    return offset | flags


def build_index(entries, version=0x00020001):
    trie = _new_node()
    for key, values in entries.items():
        node = trie
        for ch in key:
            node = node["children"].setdefault(ch, _new_node())
        node["values"].extend(values)
    out = bytearray(12)
    root = _write_node(trie, out)
    struct.pack_into(">III", out, 0, INDEX_MAGIC, version, root)
    return bytes(out)


ENTRIES = {
    "ask": [(0, "kernel/ask.ko")],
    "ate": [(0, "kernel/ate.ko")],
    "on": [(0, "kernel/on.ko")],
    "once": [(0, "kernel/once.ko")],
    "one": [(1, "kernel/one_a.ko"), (2, "kernel/one_b.ko")],
}


@pytest.fixture
def index():
    return Index(build_index(ENTRIES))


def test_header_starts_with_magic():
    data = build_index(ENTRIES)
    assert data[:4] == b"\xb0\x07\xf4\x57"
    assert Index(data).version == 0x00020001


@pytest.mark.parametrize("key", sorted(ENTRIES))
def test_search_finds_each_key(index, key):
    assert index.search(key) == ENTRIES[key][0][1]


@pytest.mark.parametrize("key", ["", "a", "as", "asks", "onc", "zzz", "oneX"])
def test_search_missing(index, key):
    assert index.search(key) is None


def test_search_returns_first_value(index):
    assert index.search("one") == "kernel/one_a.ko"


def test_dump_lists_all_pairs_in_order(index):
    out = io.StringIO()
    index.dump(out)
    expected = "".join(
        f"{key} {value}\n"
        for key in sorted(ENTRIES)
        for _, value in ENTRIES[key]
    )
    assert out.getvalue() == expected


def test_dump_alias_prefix(index):
    out = io.StringIO()
    index.dump(out, alias_prefix=True)
    lines = out.getvalue().splitlines()
    assert len(lines) == 6
    assert all(line.startswith("alias ") for line in lines)
    assert lines[0] == "alias ask kernel/ask.ko"


def test_root_children_sorted(index):
    root = index.root()
    chars = [ch for ch, _ in root.children()]
    assert chars == sorted(chars)
    assert chars == ["a", "o"]


def test_child_missing_returns_none(index):
    root = index.root()
    assert root.child("z") is None
    assert root.child(0) is None


def test_read_node_invalid_offsets(index):
    assert index.read_node(0) is None
    assert index.read_node(NODE_PREFIX) is None
    assert index.read_node(len(index.data) + 5) is None


def test_open_from_file(tmp_path):
    path = tmp_path / "modules.dep.bin"
    path.write_bytes(build_index(ENTRIES))
    idx = Index.open(path)
    assert idx.search("ate") == "kernel/ate.ko"


def test_minor_version_accepted():
    idx = Index(build_index(ENTRIES, version=0x00020009))
    assert idx.search("on") == "kernel/on.ko"


def test_bad_magic():
    data = bytearray(build_index(ENTRIES))
    data[0] ^= 0xFF
    with pytest.raises(IndexFormatError):
        Index(bytes(data))


def test_bad_major_version():
    with pytest.raises(IndexFormatError):
        Index(build_index(ENTRIES, version=0x00030001))


def test_too_short():
    with pytest.raises(IndexFormatError):
        Index(b"\xb0\x07\xf4\x57")


def test_truncated_node_is_not_found():
    data = build_index({"abc": [(0, "x")]})
    idx = Index(data[:-1])
    assert idx.search("abc") is None


def test_insert_value_sorted():
    values = []
    for priority, value in [(3, "c"), (1, "a"), (2, "b")]:
        insert_value(values, value, priority)
    assert [v.priority for v in values] == [1, 2, 3]
    assert [v.value for v in values] == ["a", "b", "c"]


def test_insert_value_equal_priority_goes_first():
    values = [IndexValue(1, "old")]
    insert_value(values, "new", 1)
    assert [v.value for v in values] == ["new", "old"]