# kmodtools

A pure Python library for some of the files that Linux kernel module tooling
works with:

- the binary trie indexes in a module directory (`modules.dep.bin`,
  `modules.alias.bin`, `modules.symbols.bin`, ...), including wildcard
  alias lookups;
- `modules.builtin.modinfo`, the modinfo strings of modules built into the
  kernel;
- modprobe configuration (`alias`, `blacklist`, `options`, `install`,
  `remove`, `softdep`, `weakdep`) and module options given on the kernel
  command line.

It has no dependencies outside the standard library.

## Indexes

```python
from kmodtools.index import Index
from kmodtools.index_wild import search_wild

index = Index.open("/lib/modules/6.8.0/modules.dep.bin")
print(index.search("ext4"))          # first value stored for the key, or None

aliases = Index.open("/lib/modules/6.8.0/modules.alias.bin")
for value in search_wild(aliases, "pci:v00008086d00001234sv*"):
    print(value.priority, value.value)
```

`Index` takes the file's bytes (or `Index.open` reads them from a path) and
raises `IndexFormatError` when the magic number or major version is wrong.
Nodes can be walked by hand through `Index.root()`, `IndexNode.child()` and
`IndexNode.children()`.

Keys stored in an alias index may hold shell-style patterns (`*`, `?`,
`[...]`); `search_wild` returns the values of every stored pattern that
matches the key, as `IndexValue` objects ordered by priority.

`Index.dump(out, alias_prefix)` writes every key and value of an index to a
text stream as `key value` lines; with `alias_prefix=True` each line starts
with `alias `.

## Built-in modules

```python
from kmodtools.builtin import get_builtin_modinfo, parse_builtin_modinfo

for line in get_builtin_modinfo("/lib/modules/6.8.0", "ext4"):
    print(line)                      # "license=GPL", "description=...", ...
```

`parse_builtin_modinfo(data, modname)` does the same on bytes already read.
An entry without a module name prefix raises `BuiltinModinfoError`.

## Configuration

```python
from kmodtools.config import Config, ConfigType
from kmodtools.conffiles import load_config

config = Config()
config.parse(
    "alias my-alias snd_hda_intel\n"
    "options snd_hda_intel power_save=1\n"
    "softdep snd_hda_intel pre: snd_pcm post: snd_timer\n",
    "example.conf",
)
for key, value in config.entries(ConfigType.SOFTDEP):
    print(key, value)                # snd_hda_intel pre: snd_pcm post: snd_timer

config = load_config(
    "/lib/modules/6.8.0",
    ["/etc/modprobe.d", "/run/modprobe.d", "/usr/lib/modprobe.d"],
    "/proc/cmdline",
)
```

`load_config` also reads `modules.softdep` and `modules.weakdep` from the
module directory. Files are parsed in the order of their names; a name seen
first (the module directory's files, then earlier configuration paths) hides
a file of the same name found later. Only `*.conf` files are taken from
directories. Bad lines are logged and skipped, and lines ending in a
backslash continue on the next line. Pass `cmdline_path=None` to leave the
kernel command line out. `list_config_files` returns the files that would be
parsed, as `ConfFile` entries, together with the `ConfigPath` entries of the
paths that exist.

`Config.entries` walks one kind of entry at a time as key/value pairs, and
`SoftDep.to_string` / `WeakDep.to_string` give the dependency lists back as
text.

Kernel command line options of the form `module.param=value` (and
`modprobe.blacklist=a,b`) are handled by `kmodtools.kcmdline.parse_kcmdline`,
which returns `(modname, param, value)` tuples, and `apply_kcmdline`, which
adds them to a `Config`.

## What it does not do

This package does not read kernel module object files: it does not open
compressed module files, and it does not extract `.modinfo` strings, version
CRCs or symbols from a module. It does not load or unload modules either and
has no command-line program; it only reads and interprets the index and
configuration data above.

## Requirements

Python 3.10 or later.