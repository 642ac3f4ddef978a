"""Discovery and loading of module configuration files."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Iterable

from kmodtools.config import Config
from kmodtools.kcmdline import apply_kcmdline

logger = logging.getLogger(__name__)

DEFAULT_CMDLINE_PATH = "/proc/cmdline"
_DEPMOD_FILES = ("modules.softdep", "modules.weakdep")
_CONF_SUFFIX = ".conf"


@dataclass(frozen=True)
class ConfigPath:
    """A configuration path that existed, with its modification stamp in microseconds."""

    path: str
    stamp: int


@dataclass(frozen=True)
class ConfFile:
    """One configuration file to parse.

    ``path`` is the containing directory, or the file itself when
    ``is_single`` is true.
    """

    path: str
    name: str
    is_single: bool = False

    @property
    def full_path(self) -> str:
        if self.is_single:
            return self.path
        return os.path.join(self.path, self.name)


def _mstamp(st: os.stat_result) -> int:
    return st.st_mtime_ns // 1000


def _insert_sorted(files: dict[str, ConfFile], entry: ConfFile) -> None:
    if entry.name in files:
        logger.debug("Ignoring duplicate config file: %s/%s", entry.path, entry.name)
        return
    files[entry.name] = entry


def _keep_entry(dirpath: str, entry: os.DirEntry[str]) -> bool:
    fn = entry.name
    if fn.startswith("."):
        return False
    if len(fn) < len(_CONF_SUFFIX) + 1 or not fn.endswith(_CONF_SUFFIX):
        return False
    try:
        is_dir = entry.is_dir(follow_symlinks=True)
        entry.stat(follow_symlinks=True)
    except OSError:
        logger.error("Cannot stat directory entry: %s/%s", dirpath, fn)
        return False
    if is_dir:
        logger.error(
            "Directories inside directories are not supported: %s/%s", dirpath, fn
        )
        return False
    return True


def list_config_files(
    paths: Iterable[str | os.PathLike[str]], dirname: str | os.PathLike[str]
) -> tuple[list[ConfFile], list[ConfigPath]]:
    """Collect the configuration files to parse, sorted by file name.

    The ``modules.softdep`` and ``modules.weakdep`` files of ``dirname`` come
    first in precedence; for each name only the first file found is kept.
    Paths that do not exist are skipped and left out of the returned paths.
    """
    files: dict[str, ConfFile] = {}
    dirname = os.fspath(dirname)
    for name in _DEPMOD_FILES:
        _insert_sorted(files, ConfFile(dirname, name))

    config_paths: list[ConfigPath] = []
    for raw in paths:
        path = os.fspath(raw)
        try:
            st = os.stat(path)
        except OSError as exc:
            logger.debug("could not stat '%s': %s", path, exc)
            continue
        stamp = _mstamp(st)

        if not os.path.isdir(path):
            _insert_sorted(files, ConfFile(path, os.path.basename(path), True))
        else:
            try:
                with os.scandir(path) as it:
                    for entry in it:
                        if _keep_entry(path, entry):
                            _insert_sorted(files, ConfFile(path, entry.name))
            except OSError as exc:
                logger.error("opendir(%s): %s", path, exc)
                continue
        config_paths.append(ConfigPath(path, stamp))

    ordered = [files[name] for name in sorted(files)]
    return ordered, config_paths


def _read_text(path: str) -> str | None:
    try:
        with open(path, "rb") as fp:
            data = fp.read()
    except OSError as exc:
        logger.debug("could not open '%s': %s", path, exc)
        return None
    return data.decode("utf-8", errors="surrogateescape")


def load_config(
    dirname: str | os.PathLike[str],
    config_paths: Iterable[str | os.PathLike[str]],
    cmdline_path: str | os.PathLike[str] | None = DEFAULT_CMDLINE_PATH,
) -> Config:
    """Build a Config from the files in ``config_paths`` and the kernel command line.

    Files that cannot be opened are skipped, as is an unreadable command
    line.  Pass ``cmdline_path=None`` to leave the command line out.
    """
    files, paths = list_config_files(config_paths, dirname)
    config = Config()
    config.paths = list(paths)

    for conf in files:
        fn = conf.full_path
        text = _read_text(fn)
        logger.debug("parsing file '%s' (%s)", fn, "ok" if text is not None else "missing")
        if text is not None:
            config.parse(text, fn)

    if cmdline_path is not None:
        text = _read_text(os.fspath(cmdline_path))
        if text is not None:
            apply_kcmdline(config, text)

    return config