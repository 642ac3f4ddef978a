"""Readers for Linux kernel module indexes, built-in modinfo and modprobe configuration."""

__version__ = "0.1.0"

__all__ = [
    "builtin",
    "conffiles",
    "config",
    "index",
    "index_wild",
    "kcmdline",
]