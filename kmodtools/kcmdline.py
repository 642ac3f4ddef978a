"""Module options and blacklists given on the kernel command line."""

from __future__ import annotations

import enum
import logging

from kmodtools.config import Config, _underscores

logger = logging.getLogger(__name__)

_SPACE = " \n\t\v\f\r"


class _State(enum.Enum):
    IGNORE = enum.auto()
    MODNAME = enum.auto()
    PARAM = enum.auto()
    VALUE = enum.auto()
    COMPLETE = enum.auto()


def parse_kcmdline(text: str) -> list[tuple[str, str, str | None]]:
    """Return ``(modname, param, value)`` for every ``modname.param[=value]`` word.

    ``param`` keeps its ``=value`` part; ``value`` is None when there is no
    ``=``.  Ill-formed words are skipped.  A word that the boot loader quoted
    whole, such as ``"mod.p=a b"``, is re-quoted as ``mod.p="a b"``.
    """
    text = text.split("\0", 1)[0]
    n = len(text)
    results: list[tuple[str, str, str | None]] = []

    state = _State.MODNAME
    quoted = False
    modname = 0
    modname_end = 0
    param = 0
    value: int | None = None
    quote_start: int | None = None

    for p in range(n + 1):
        ch = text[p] if p < n else "\0"

        if ch == '"':
            quoted = not quoted
            # a quote may only open a word, anything else is ill-formed
            if quoted and state is _State.MODNAME and p == modname:
                quote_start = p
                modname = p + 1
            elif state is not _State.VALUE:
                state = _State.IGNORE
        elif ch == "\0" or ch in _SPACE:
            if quoted and state is _State.VALUE:
                pass
            elif quoted:
                state = _State.IGNORE
            elif state in (_State.VALUE, _State.PARAM):
                state = _State.COMPLETE
            else:
                modname = p + 1
                state = _State.MODNAME
                quote_start = None
        elif ch == ".":
            if state is _State.MODNAME:
                modname_end = p
                param = p + 1
                value = None
                state = _State.PARAM
            elif state is _State.PARAM:
                state = _State.IGNORE
        elif ch == "=":
            if state is _State.PARAM:
                value = p + 1
                state = _State.VALUE
            elif state is _State.MODNAME:
                state = _State.IGNORE

        if state is _State.COMPLETE:
            name = text[modname:modname_end]
            param_s = text[param:p]
            value_s = text[value:p] if value is not None else None
            if quote_start is not None and quote_start < modname and value is not None:
                param_s = text[param:value] + '"' + text[value:p]
                value_s = '"' + text[value:p]
            results.append((name, param_s, value_s))
            modname = p + 1
            state = _State.MODNAME
            quote_start = None

    return results


def apply_kcmdline(config: Config, text: str) -> None:
    """Add the options and blacklists found in a kernel command line to ``config``."""
    for modname, param, value in parse_kcmdline(text):
        if modname == "modprobe" and param.startswith("blacklist="):
            for name in (value or "").split(","):
                config.add_blacklist(name)
            continue
        normalized = _underscores(modname)
        if normalized is None:
            logger.error(
                "Ignoring bad option on kernel command line while parsing "
                "module name: '%s'",
                modname,
            )
            continue
        config.add_options(normalized, param)