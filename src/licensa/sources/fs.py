# fs.py
# SPDX-License-Identifier: MIT
"""Workspace traversal with gitignore-style exclusion."""

from __future__ import annotations

import os
import re
from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path

from ..core.log import get_logger

log = get_logger(__name__)

__all__ = [
    "VCS_DIRS",
    "TOOL_IGNORE_FILE",
    "ScanEntry",
    "GitignoreRule",
    "GitignoreMatcher",
    "parse_ignore_patterns",
    "scan",
    "collect_paths",
    "read_file_prefix",
]

# Metadata directories of version-control tools; never entered.
VCS_DIRS: frozenset[str] = frozenset({".git", ".hg", ".svn", ".bzr", "_darcs", "CVS", ".jj", ".pijul"})

VCS_IGNORE_FILE = ".gitignore"
# Read in every directory regardless of respect_vcs_ignore.
TOOL_IGNORE_FILE = ".licensaignore"


@dataclass(frozen=True, slots=True)
class ScanEntry:
    """A candidate file produced by :func:`scan`.

    Attributes:
        path (Path): Absolute path on disk.
        rel (str): POSIX path relative to the scan root.
        included (bool): False for entries that report a problem instead of
            a processable file (currently unreadable directories).
        error (str | None): Error detail for non-included entries.
    """

    path: Path
    rel: str
    included: bool = True
    error: str | None = None


def read_file_prefix(
    path: Path,
    max_bytes: int | None,
    *,
    chunk_size: int = 64 * 1024,
) -> tuple[bytes, int]:
    """Read at most ``max_bytes`` from the start of a file.

    Args:
        path (Path): File to read.
        max_bytes (int | None): Maximum bytes to read; None reads the
            whole file.
        chunk_size (int): Chunk size for streaming reads.

    Returns:
        tuple[bytes, int]: The data read and the on-disk file size.

    Raises:
        ValueError: If chunk_size is not positive.
    """
    if chunk_size <= 0:
        raise ValueError("chunk_size must be positive")
    buf = bytearray()
    with path.open("rb") as fh:
        file_size = os.fstat(fh.fileno()).st_size
        remaining = max_bytes
        while remaining is None or remaining > 0:
            step = chunk_size if remaining is None else min(chunk_size, remaining)
            chunk = fh.read(step)
            if not chunk:
                break
            buf.extend(chunk)
            if remaining is not None:
                remaining -= len(chunk)
    return bytes(buf), int(file_size)


# ---------------------
# gitignore-style rules
# ---------------------

def _glob_to_regex(pat: str) -> str:
    """Translate one gitignore glob (no leading '!' or '/') into a regex body."""
    out: list[str] = []
    i, n = 0, len(pat)
    while i < n:
        c = pat[i]
        if c == "*":
            if pat.startswith("**", i):
                at_segment_start = i == 0 or pat[i - 1] == "/"
                j = i + 2
                if at_segment_start and j < n and pat[j] == "/":
                    out.append("(?:[^/]*/)*")
                    i = j + 1
                    continue
                if at_segment_start and j == n:
                    out.append(".*")
                    i = j
                    continue
                out.append("[^/]*")
                i = j
                continue
            out.append("[^/]*")
            i += 1
        elif c == "?":
            out.append("[^/]")
            i += 1
        elif c == "[":
            j = pat.find("]", i + 2)
            if j == -1:
                out.append(re.escape(c))
                i += 1
                continue
            body = pat[i + 1 : j]
            if body.startswith("!"):
                body = "^" + body[1:]
            out.append(f"[{body}]")
            i = j + 1
        elif c == "\\" and i + 1 < n:
            out.append(re.escape(pat[i + 1]))
            i += 2
        else:
            out.append(re.escape(c))
            i += 1
    return "".join(out)


@dataclass(frozen=True)
class GitignoreRule:
    pattern: str  # as written (may start with '!' or end with '/')
    negate: bool
    dir_only: bool
    base: str  # POSIX directory the rule is relative to ("." for the top)

    def cleaned_pattern(self) -> str:
        """Return the pattern stripped of negation and directory markers."""
        p = self.pattern
        if self.negate:
            p = p[1:]
        if self.dir_only and p.endswith("/"):
            p = p[:-1]
        return p

    @cached_property
    def regex(self) -> re.Pattern[str]:
        pat = self.cleaned_pattern()
        # A separator at the start or in the middle anchors the rule to its base.
        anchored = "/" in pat
        pat = pat.lstrip("/")
        prefix = "^" if anchored else "^(?:.*/)?"
        return re.compile(prefix + _glob_to_regex(pat) + "$", re.DOTALL)

    def matches(self, subpath: str, is_dir: bool) -> bool:
        if self.dir_only and not is_dir:
            return False
        return self.regex.match(subpath) is not None


class GitignoreMatcher:
    """Evaluator for ordered gitignore-style rules; the last matching rule wins."""

    def __init__(self, rules: Sequence[GitignoreRule] | None = None) -> None:
        self._rules: list[GitignoreRule] = list(rules or [])

    def __len__(self) -> int:
        return len(self._rules)

    def with_additional(self, extra: Sequence[GitignoreRule]) -> GitignoreMatcher:
        """Return a new matcher that appends extra rules after current ones."""
        return GitignoreMatcher([*self._rules, *extra])

    @staticmethod
    def _is_within(base: str, rel: str) -> bool:
        return base == "." or rel.startswith(base + "/")

    @staticmethod
    def _rel_to_base(base: str, rel: str) -> str:
        if base == ".":
            return rel
        return rel[len(base) + 1 :]

    def decide(self, rel: str, is_dir: bool) -> bool | None:
        """Return True (ignored), False (re-included) or None (no rule matched)."""
        verdict: bool | None = None
        for rule in self._rules:
            if not self._is_within(rule.base, rel):
                continue
            if rule.matches(self._rel_to_base(rule.base, rel), is_dir):
                verdict = not rule.negate
        return verdict

    def ignores(self, rel: str, is_dir: bool) -> bool:
        """Return True if ``rel`` (POSIX, relative to the matcher root) is ignored."""
        return bool(self.decide(rel, is_dir))


def _parse_gitignore_lines(lines: Iterable[str], base: str) -> list[GitignoreRule]:
    """Parse .gitignore lines into normalized rules anchored at base."""
    rules: list[GitignoreRule] = []
    for raw in lines:
        line = raw.rstrip("\r\n")
        if not line.strip():
            continue
        if line.startswith("\\#"):
            line = line[1:]
        elif line.lstrip().startswith("#"):
            continue
        negate = False
        if line.startswith("\\!"):
            line = line[1:]
        elif line.startswith("!"):
            negate = True
            line = line[1:]
        # Trailing spaces are significant only when escaped.
        if not line.endswith("\\ "):
            line = line.rstrip(" ")
        line = line.replace("\\ ", " ")
        dir_only = line.endswith("/")
        anchored = line.startswith("/")
        parts = [part for part in line.split("/") if part not in ("", ".")]
        pat = "/".join(parts)
        if not pat:
            continue
        if anchored:
            pat = "/" + pat
        if dir_only:
            pat += "/"
        prefix = "!" if negate else ""
        rules.append(GitignoreRule(pattern=prefix + pat, negate=negate, dir_only=dir_only, base=base))
    return rules


def parse_ignore_patterns(patterns: Iterable[str], base: str = ".") -> list[GitignoreRule]:
    """Parse user-supplied ignore globs (gitignore syntax, '!' re-includes)."""
    return _parse_gitignore_lines(patterns, base)


def _load_ignore_file(path: Path, base: str) -> list[GitignoreRule]:
    try:
        with path.open("r", encoding="utf-8", errors="replace") as f:
            lines = f.readlines()
    except OSError as exc:
        log.warning("Could not read ignore file %s: %s", path, exc)
        return []
    return _parse_gitignore_lines(lines, base)


def _join_rel(base: str, name: str) -> str:
    return name if base in ("", ".") else f"{base}/{name}"


def _find_vcs_top(root: Path) -> Path:
    for candidate in (root, *root.parents):
        if (candidate / ".git").exists():
            return candidate
    return root


# ----------------
# Directory walk
# ----------------

@dataclass
class _ScanState:
    top: Path
    prefix: str  # scan root relative to top, "." when identical
    respect_vcs_ignore: bool
    skip_hidden: bool
    user: GitignoreMatcher

    def to_top(self, rel: str) -> str:
        """Re-express a root-relative path relative to the repository top."""
        if self.prefix == ".":
            return rel
        return _join_rel(self.prefix, rel) if rel else self.prefix

    def ignored(self, matcher: GitignoreMatcher, rel_top: str, is_dir: bool) -> bool:
        # Configured patterns are evaluated after every ignore file and win.
        verdict = self.user.decide(rel_top, is_dir)
        if verdict is None:
            verdict = matcher.decide(rel_top, is_dir)
        return bool(verdict)

    def dir_rules(self, dpath: Path, names: set[str], base: str) -> list[GitignoreRule]:
        rules: list[GitignoreRule] = []
        if self.respect_vcs_ignore and VCS_IGNORE_FILE in names:
            rules.extend(_load_ignore_file(dpath / VCS_IGNORE_FILE, base))
        if TOOL_IGNORE_FILE in names:
            rules.extend(_load_ignore_file(dpath / TOOL_IGNORE_FILE, base))
        return rules


def _initial_matcher(state: _ScanState) -> GitignoreMatcher:
    """Collect rules living above the scan root (repo excludes, parent .gitignore files)."""
    if not state.respect_vcs_ignore:
        return GitignoreMatcher()
    rules: list[GitignoreRule] = []
    exclude = state.top / ".git" / "info" / "exclude"
    if exclude.is_file():
        rules.extend(_load_ignore_file(exclude, "."))
    parts = Path(state.prefix).parts if state.prefix != "." else ()
    for depth in range(len(parts)):
        gi = state.top.joinpath(*parts[:depth]) / VCS_IGNORE_FILE
        if gi.is_file():
            rules.extend(_load_ignore_file(gi, "/".join(parts[:depth]) or "."))
    return GitignoreMatcher(rules)


def _path_order(entry: os.DirEntry[str]) -> str:
    # Directories sort as "name/" so children follow the same order as full paths.
    try:
        is_dir = entry.is_dir(follow_symlinks=False)
    except OSError:
        is_dir = False
    return entry.name + "/" if is_dir else entry.name


def _walk(
    state: _ScanState,
    dpath: Path,
    rel_dir: str,
    matcher: GitignoreMatcher,
) -> Iterator[ScanEntry]:
    try:
        with os.scandir(dpath) as it:
            entries = sorted(it, key=_path_order)
    except OSError as exc:
        detail = f"unreadable directory: {exc.strerror or exc}"
        log.warning("Skipping %s: %s", dpath, detail)
        yield ScanEntry(path=dpath, rel=rel_dir or ".", included=False, error=detail)
        return

    extra = state.dir_rules(dpath, {e.name for e in entries}, state.to_top(rel_dir) or ".")
    if extra:
        matcher = matcher.with_additional(extra)

    for entry in entries:
        name = entry.name
        rel = _join_rel(rel_dir, name)
        rel_top = state.to_top(rel)
        try:
            if entry.is_symlink():
                continue
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = entry.is_file(follow_symlinks=False)
        except OSError as exc:
            log.debug("Could not stat %s: %s", entry.path, exc)
            continue
        if is_dir:
            if name in VCS_DIRS:
                continue
            if state.skip_hidden and name.startswith("."):
                continue
            if state.ignored(matcher, rel_top, is_dir=True):
                log.debug("Ignored directory %s", rel)
                continue
            yield from _walk(state, Path(entry.path), rel, matcher)
        elif is_file:
            if state.skip_hidden and name.startswith("."):
                continue
            if state.ignored(matcher, rel_top, is_dir=False):
                continue
            yield ScanEntry(path=Path(entry.path), rel=rel)


def scan(
    root: os.PathLike[str] | str,
    ignore_patterns: Iterable[str] = (),
    respect_vcs_ignore: bool = True,
    *,
    skip_hidden: bool = True,
) -> Iterator[ScanEntry]:
    """Yield candidate files under ``root`` in lexicographic path order.

    Traversal is depth-first and never follows symbolic links. Directories
    of version-control tools are always skipped. A path is excluded when the
    last matching rule across the ignore files (``.gitignore`` when
    ``respect_vcs_ignore``, plus ``.licensaignore``) and ``ignore_patterns``
    says so; ``ignore_patterns`` are evaluated last and therefore take
    precedence, including their ``!`` negations. Excluded directories are
    not entered, so nothing beneath them can be re-included.

    Unreadable directories produce a single non-included entry carrying the
    error instead of aborting the scan.

    Args:
        root: Workspace directory.
        ignore_patterns: Extra gitignore-syntax globs relative to ``root``.
        respect_vcs_ignore: Honor ``.gitignore`` files at or above ``root``
            and ``.git/info/exclude``.
        skip_hidden: Skip dotfiles and dot-directories.

    Yields:
        ScanEntry: One entry per included file (or unreadable directory).

    Raises:
        NotADirectoryError: If ``root`` is not a directory.
    """
    root_path = Path(root).resolve()
    if not root_path.is_dir():
        raise NotADirectoryError(root_path)
    top = _find_vcs_top(root_path) if respect_vcs_ignore else root_path
    prefix = root_path.relative_to(top).as_posix() if top != root_path else "."
    state = _ScanState(
        top=top,
        prefix=prefix,
        respect_vcs_ignore=respect_vcs_ignore,
        skip_hidden=skip_hidden,
        user=GitignoreMatcher(parse_ignore_patterns(ignore_patterns, prefix)),
    )
    yield from _walk(state, root_path, "", _initial_matcher(state))


def collect_paths(*args, **kwargs) -> list[str]:
    """Return the relative paths of included entries; convenient in tests."""
    return [entry.rel for entry in scan(*args, **kwargs) if entry.included]
