"""Module configuration: aliases, blacklists, options, commands and soft/weak deps."""

from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Iterator

logger = logging.getLogger(__name__)

_SPACE = " \t\n\v\f\r"
_SPACE_RE = re.compile(r"[ \t\n\v\f\r]+")


class ConfigType(enum.Enum):
    BLACKLIST = 0
    INSTALL = 1
    REMOVE = 2
    ALIAS = 3
    OPTION = 4
    SOFTDEP = 5
    WEAKDEP = 6


@dataclass(frozen=True)
class Alias:
    name: str
    modname: str


@dataclass(frozen=True)
class Option:
    modname: str
    options: str


@dataclass(frozen=True)
class Command:
    modname: str
    command: str


@dataclass(frozen=True)
class SoftDep:
    name: str
    pre: tuple[str, ...] = ()
    post: tuple[str, ...] = ()

    def to_string(self) -> str:
        """Render the dependency lists the way the configuration dump shows them."""
        s = ""
        if self.pre and "".join(self.pre):
            s += "pre: " + " ".join(self.pre)
        if self.post and "".join(self.post):
            s += "post: " + " ".join(self.post)
        return s


@dataclass(frozen=True)
class WeakDep:
    name: str
    weak: tuple[str, ...] = ()

    def to_string(self) -> str:
        """Render the weak dependencies separated by spaces."""
        return " ".join(self.weak)


def _underscores(s: str | None) -> str | None:
    """Turn '-' into '_' outside bracket expressions; None if malformed."""
    if s is None:
        return None
    out: list[str] = []
    i, n = 0, len(s)
    while i < n:
        c = s[i]
        if c == "-":
            out.append("_")
        elif c == "]":
            return None
        elif c == "[":
            end = s.find("]", i)
            if end < 0:
                return None
            out.append(s[i : end + 1])
            i = end
        else:
            out.append(c)
        i += 1
    return "".join(out)


def _words(line: str) -> list[str]:
    """Split a dependency line on blanks.

    A single blank at the very start of the line stays attached to the first
    word, and an empty line yields one empty word.
    """
    if not line:
        return [""]
    lead = ""
    if len(line) > 1 and line[0] in _SPACE and line[1] not in _SPACE:
        lead, line = line[0], line[1:]
    words = [w for w in _SPACE_RE.split(line) if w]
    if lead and words:
        words[0] = lead + words[0]
    return words


def parse_softdep(modname: str, line: str) -> SoftDep:
    """Parse ``pre: a b post: c`` style text into a SoftDep."""
    pre: list[str] = []
    post: list[str] = []
    target: list[str] | None = None
    for word in _words(line):
        if word == "pre:":
            target = pre
        elif word == "post:":
            target = post
        elif target is not None:
            target.append(word)
    return SoftDep(modname, tuple(pre), tuple(post))


def parse_weakdep(modname: str, line: str) -> WeakDep:
    """Parse a blank-separated list of weak dependencies."""
    return WeakDep(modname, tuple(_words(line)))


def _strtok(s: str, pos: int, delims: str) -> tuple[str | None, int]:
    n = len(s)
    while pos < n and s[pos] in delims:
        pos += 1
    if pos >= n:
        return None, n
    end = pos
    while end < n and s[end] not in delims:
        end += 1
    return s[pos:end], min(end + 1, n)


def _logical_lines(text: str) -> Iterator[tuple[int, str]]:
    """Yield (line number, line) joining lines that end with a backslash."""
    pending = ""
    linenum = 0
    for raw in text.splitlines():
        linenum += 1
        if raw.endswith("\\"):
            pending += raw[:-1]
            continue
        yield linenum, pending + raw
        pending = ""
    if pending:
        yield linenum, pending


@dataclass
class Config:
    """Accumulated configuration from files and the kernel command line."""

    aliases: list[Alias] = field(default_factory=list)
    blacklists: list[str] = field(default_factory=list)
    options: list[Option] = field(default_factory=list)
    install_commands: list[Command] = field(default_factory=list)
    remove_commands: list[Command] = field(default_factory=list)
    softdeps: list[SoftDep] = field(default_factory=list)
    weakdeps: list[WeakDep] = field(default_factory=list)
    paths: list[Any] = field(default_factory=list)

    def add_alias(self, name: str, modname: str) -> Alias:
        entry = Alias(name, modname)
        self.aliases.append(entry)
        return entry

    def add_blacklist(self, modname: str) -> str:
        self.blacklists.append(modname)
        return modname

    def add_options(self, modname: str, options: str) -> Option:
        entry = Option(modname, options.replace("\t", " "))
        self.options.append(entry)
        return entry

    def add_install_command(self, modname: str, command: str) -> Command:
        entry = Command(modname, command)
        self.install_commands.append(entry)
        return entry

    def add_remove_command(self, modname: str, command: str) -> Command:
        entry = Command(modname, command)
        self.remove_commands.append(entry)
        return entry

    def add_softdep(self, modname: str, line: str) -> SoftDep:
        entry = parse_softdep(modname, line)
        self.softdeps.append(entry)
        return entry

    def add_weakdep(self, modname: str, line: str) -> WeakDep:
        entry = parse_weakdep(modname, line)
        self.weakdeps.append(entry)
        return entry

    def parse(self, text: str, filename: str = "") -> None:
        """Add the directives of one configuration file; bad lines are logged and skipped."""
        for linenum, line in _logical_lines(text):
            if not line or line[0] == "#":
                continue
            cmd, pos = _strtok(line, 0, "\t ")
            if cmd is None:
                continue
            if not self._parse_directive(cmd, line, pos):
                if cmd in ("include", "config"):
                    logger.error(
                        "%s: command %s is deprecated and not parsed anymore",
                        filename,
                        cmd,
                    )
                else:
                    logger.error(
                        "%s line %u: ignoring bad line starting with '%s'",
                        filename,
                        linenum,
                        cmd,
                    )

    def _parse_directive(self, cmd: str, line: str, pos: int) -> bool:
        if cmd == "alias":
            alias, pos = _strtok(line, pos, "\t ")
            modname, pos = _strtok(line, pos, "\t ")
            alias, modname = _underscores(alias), _underscores(modname)
            if alias is None or modname is None:
                return False
            self.add_alias(alias, modname)
            return True
        if cmd == "blacklist":
            modname, pos = _strtok(line, pos, "\t ")
            modname = _underscores(modname)
            if modname is None:
                return False
            self.add_blacklist(modname)
            return True

        handlers = {
            "options": self.add_options,
            "install": self.add_install_command,
            "remove": self.add_remove_command,
            "softdep": self.add_softdep,
            "weakdep": self.add_weakdep,
        }
        handler = handlers.get(cmd)
        if handler is None:
            return False
        modname, pos = _strtok(line, pos, "\t ")
        rest, pos = _strtok(line, pos, "")
        modname = _underscores(modname)
        if modname is None or rest is None:
            return False
        handler(modname, rest)
        return True

    def entries(self, kind: ConfigType) -> Iterator[tuple[str, str | None]]:
        """Yield ``(key, value)`` pairs of one kind of configuration entry."""
        if kind is ConfigType.BLACKLIST:
            for name in self.blacklists:
                yield name, None
        elif kind is ConfigType.INSTALL:
            for c in self.install_commands:
                yield c.modname, c.command
        elif kind is ConfigType.REMOVE:
            for c in self.remove_commands:
                yield c.modname, c.command
        elif kind is ConfigType.ALIAS:
            for a in self.aliases:
                yield a.name, a.modname
        elif kind is ConfigType.OPTION:
            for o in self.options:
                yield o.modname, o.options
        elif kind is ConfigType.SOFTDEP:
            for s in self.softdeps:
                yield s.name, s.to_string()
        elif kind is ConfigType.WEAKDEP:
            for w in self.weakdeps:
                yield w.name, w.to_string()
        else:
            raise ValueError(f"unknown configuration type: {kind!r}")