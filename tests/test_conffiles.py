import os

import pytest

from kmodtools.config import Alias, Option
from kmodtools.conffiles import (
    ConfFile,
    ConfigPath,
    list_config_files,
    load_config,
)


@pytest.fixture
def layout(tmp_path):
    moddir = tmp_path / "lib"
    moddir.mkdir()
    d1 = tmp_path / "d1"
    d2 = tmp_path / "d2"
    d1.mkdir()
    d2.mkdir()
    (d1 / "b.conf").write_text("blacklist bmod\n")
    (d1 / "a.conf").write_text("alias foo bar\noptions mod a=1\n")
    (d2 / "a.conf").write_text("alias x y\n")
    (d2 / "c.conf").write_text("blacklist cmod\n")
    return moddir, d1, d2


def test_files_sorted_and_deduplicated(layout):
    moddir, d1, d2 = layout
    files, paths = list_config_files([d1, d2], moddir)
    names = [f.name for f in files]
    assert names == sorted(names)
    assert names == ["a.conf", "b.conf", "c.conf", "modules.softdep", "modules.weakdep"]
    first = files[0]
    assert first.path == str(d1)
    assert [p.path for p in paths] == [str(d1), str(d2)]


def test_filters_hidden_non_conf_and_directories(tmp_path):
    d = tmp_path / "conf"
    d.mkdir()
    (d / ".hidden.conf").write_text("")
    (d / "x.txt").write_text("")
    (d / ".conf").write_text("")
    (d / "sub.conf").mkdir()
    (d / "ok.conf").write_text("")
    files, _ = list_config_files([d], tmp_path)
    assert [f.name for f in files if not f.name.startswith("modules.")] == ["ok.conf"]


def test_single_file_and_missing_path(tmp_path):
    single = tmp_path / "single.conf"
    single.write_text("blacklist z\n")
    missing = tmp_path / "nope"
    files, paths = list_config_files([missing, single], tmp_path)
    entry = next(f for f in files if f.name == "single.conf")
    assert entry.is_single
    assert entry.full_path == str(single)
    assert len(paths) == 1
    assert paths[0].path == str(single)
    assert paths[0].stamp == os.stat(single).st_mtime_ns // 1000


def test_conffile_full_path_in_directory(tmp_path):
    cf = ConfFile(str(tmp_path), "a.conf")
    assert cf.full_path == os.path.join(str(tmp_path), "a.conf")


def test_load_config_parses_in_order(layout, tmp_path):
    moddir, d1, d2 = layout
    (moddir / "modules.softdep").write_text("softdep m pre: p\n")
    config = load_config(moddir, [d1, d2], None)
    assert config.aliases == [Alias("foo", "bar")]
    assert config.blacklists == ["bmod", "cmod"]
    assert config.softdeps[0].name == "m"
    assert config.softdeps[0].pre == ("p",)
    assert config.weakdeps == []
    assert all(isinstance(p, ConfigPath) for p in config.paths)
    assert [p.path for p in config.paths] == [str(d1), str(d2)]


def test_load_config_applies_cmdline(layout, tmp_path):
    moddir, d1, d2 = layout
    cmdline = tmp_path / "cmdline"
    cmdline.write_text("quiet mod.opt=1 modprobe.blacklist=k1,k2\n")
    config = load_config(moddir, [d1], cmdline)
    assert config.options == [Option("mod", "a=1"), Option("mod", "opt=1")]
    assert config.blacklists == ["bmod", "k1", "k2"]


def test_load_config_missing_cmdline_is_ignored(layout, tmp_path):
    moddir, d1, _ = layout
    config = load_config(moddir, [d1], tmp_path / "absent")
    assert config.options == [Option("mod", "a=1")]


def test_load_config_no_paths(tmp_path):
    config = load_config(tmp_path, [], None)
    assert config.aliases == []
    assert config.paths == []