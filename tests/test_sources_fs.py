# test_sources_fs.py
# SPDX-License-Identifier: MIT
import os
from pathlib import Path

import pytest

from licensa.sources.fs import (
    GitignoreMatcher,
    collect_paths,
    parse_ignore_patterns,
    read_file_prefix,
    scan,
)


def _touch(root: Path, *rels: str) -> None:
    for rel in rels:
        p = root / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text("x\n", encoding="utf-8")


def test_scan_is_lexicographic_depth_first(tmp_path):
    _touch(tmp_path, "c.txt", "b.txt", "a/z.txt", "a/b.txt", "a/sub/m.txt")
    assert collect_paths(tmp_path) == ["a/b.txt", "a/sub/m.txt", "a/z.txt", "b.txt", "c.txt"]


def test_scan_orders_directories_by_full_path(tmp_path):
    _touch(tmp_path, "a.py", "a/x.py", "a-b.py", "a0.py", "a/sub/y.py", "a/sub.py")
    paths = collect_paths(tmp_path)
    assert paths == sorted(paths)
    assert paths == ["a-b.py", "a.py", "a/sub.py", "a/sub/y.py", "a/x.py", "a0.py"]


def test_scan_yields_absolute_paths(tmp_path):
    _touch(tmp_path, "pkg/mod.py")
    entries = list(scan(tmp_path))
    assert len(entries) == 1
    assert entries[0].path == (tmp_path / "pkg" / "mod.py").resolve()
    assert entries[0].included is True


def test_gitignore_rules_and_negation(tmp_path):
    _touch(tmp_path, "app.log", "keep.log", "build/out.py", "src/build.py", "src/main.py")
    (tmp_path / ".gitignore").write_text("*.log\n!keep.log\nbuild/\n", encoding="utf-8")
    assert collect_paths(tmp_path) == ["keep.log", "src/build.py", "src/main.py"]


def test_deeper_gitignore_overrides_shallower(tmp_path):
    _touch(tmp_path, "a.tmp", "sub/special.tmp", "sub/other.tmp")
    (tmp_path / ".gitignore").write_text("*.tmp\n", encoding="utf-8")
    (tmp_path / "sub" / ".gitignore").write_text("!special.tmp\n", encoding="utf-8")
    assert collect_paths(tmp_path) == ["sub/special.tmp"]


def test_anchored_pattern_only_matches_at_its_base(tmp_path):
    _touch(tmp_path, "gen.py", "pkg/gen.py")
    (tmp_path / ".gitignore").write_text("/gen.py\n", encoding="utf-8")
    assert collect_paths(tmp_path) == ["pkg/gen.py"]


def test_user_patterns_take_precedence(tmp_path):
    _touch(tmp_path, "docs/index.md", "a.log", "main.py")
    (tmp_path / ".gitignore").write_text("*.log\n", encoding="utf-8")
    paths = collect_paths(tmp_path, ["docs/", "!a.log"])
    assert paths == ["a.log", "main.py"]


def test_vcs_ignore_can_be_disabled_but_tool_ignore_applies(tmp_path):
    _touch(tmp_path, "a.log", "b.gen", "main.py")
    (tmp_path / ".gitignore").write_text("*.log\n", encoding="utf-8")
    (tmp_path / ".licensaignore").write_text("*.gen\n", encoding="utf-8")
    assert collect_paths(tmp_path, respect_vcs_ignore=False) == ["a.log", "main.py"]
    assert collect_paths(tmp_path) == ["main.py"]


def test_vcs_dirs_always_excluded(tmp_path):
    _touch(tmp_path, ".git/config", ".hg/store", ".hidden/x.py", "main.py")
    assert collect_paths(tmp_path, ["!.git/"], skip_hidden=False) == [".hidden/x.py", "main.py"]
    assert collect_paths(tmp_path) == ["main.py"]


def test_symlinks_are_not_followed(tmp_path):
    _touch(tmp_path, "real/file.py")
    try:
        os.symlink(tmp_path / "real", tmp_path / "linkdir")
        os.symlink(tmp_path / "real" / "file.py", tmp_path / "link.py")
    except (OSError, NotImplementedError):
        pytest.skip("symlinks not supported")
    assert collect_paths(tmp_path) == ["real/file.py"]


def test_unreadable_directory_yields_error_entry(tmp_path, monkeypatch):
    _touch(tmp_path, "locked/secret.py", "ok.py")
    real_scandir = os.scandir

    def fake_scandir(path):
        if Path(path).name == "locked":
            raise PermissionError(13, "Permission denied")
        return real_scandir(path)

    monkeypatch.setattr(os, "scandir", fake_scandir)
    entries = list(scan(tmp_path))
    assert [e.rel for e in entries] == ["locked", "ok.py"]
    assert entries[0].included is False
    assert entries[0].error.startswith("unreadable directory")
    assert collect_paths(tmp_path) == ["ok.py"]


def test_scan_rejects_non_directory(tmp_path):
    f = tmp_path / "file.txt"
    f.write_text("x")
    with pytest.raises(NotADirectoryError):
        list(scan(f))


def test_gitignore_matcher_last_rule_wins():
    matcher = GitignoreMatcher(parse_ignore_patterns(["*.py", "!keep.py", "build/"]))
    assert matcher.ignores("a/b.py", is_dir=False)
    assert not matcher.ignores("keep.py", is_dir=False)
    assert matcher.ignores("x/build", is_dir=True)
    assert not matcher.ignores("x/build", is_dir=False)
    assert matcher.decide("readme.md", is_dir=False) is None


def test_double_star_patterns():
    matcher = GitignoreMatcher(parse_ignore_patterns(["**/gen/*.c", "vendor/**"]))
    assert matcher.ignores("gen/a.c", is_dir=False)
    assert matcher.ignores("x/y/gen/a.c", is_dir=False)
    assert matcher.ignores("vendor/lib/a.go", is_dir=False)
    assert not matcher.ignores("src/vendor.go", is_dir=False)


def test_read_file_prefix(tmp_path):
    p = tmp_path / "data.bin"
    p.write_bytes(b"0123456789")
    assert read_file_prefix(p, 4) == (b"0123", 10)
    assert read_file_prefix(p, None, chunk_size=3) == (b"0123456789", 10)
    with pytest.raises(ValueError):
        read_file_prefix(p, 4, chunk_size=0)
