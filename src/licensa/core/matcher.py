# matcher.py
# SPDX-License-Identifier: MIT
"""Locate and classify an existing license header at the top of a file.

Classification is tiered so that unrelated comments are never mistaken for a
license header:

1. ``CORRECT``: the expected header text starts right after the preamble.
2. ``STALE``: the leading comment block uses the expected markers and
   declares the same SPDX identifier, but its text differs.
3. ``FOREIGN``: a leading comment block exists but declares no identifier,
   a different one, or cannot be delimited within the bytes read.
4. ``ABSENT``: no comment block at the top.

The preamble (UTF-8 BOM, ``#!`` line, PEP 263 encoding cookie, XML
declaration, PHP open tag) always stays in front of the header. Offsets in a
:class:`MatchResult` are byte offsets into the file.
"""

from __future__ import annotations

import codecs
import re
from dataclasses import dataclass
from enum import Enum

from .catalog import SPDX_LINE_PREFIX
from .comments import CommentStyle, LineStyle

__all__ = [
    "UTF8_BOM",
    "MatchKind",
    "MatchResult",
    "WrappedHeader",
    "match_header",
]

UTF8_BOM = codecs.BOM_UTF8

_CODING_RE = re.compile(r"^[ \t\f]*#.*?coding[:=][ \t]*[-\w.]+")
_SPDX_RE = re.compile(re.escape(SPDX_LINE_PREFIX) + r"\s*(.+?)\s*$", re.IGNORECASE)
_HEADERISH_RE = re.compile(r"copyright|\(c\)|©|SPDX-", re.IGNORECASE)
_LINE_RE = re.compile(r"[^\n]*\n|[^\n]+\Z")


class MatchKind(str, Enum):
    ABSENT = "absent"
    CORRECT = "correct"
    STALE = "stale"
    FOREIGN = "foreign"


@dataclass(frozen=True, slots=True)
class WrappedHeader:
    """Rendered header text wrapped for one comment style.

    ``text`` always uses LF line endings and ends with a newline.
    """

    text: str
    style: CommentStyle
    license_id: str

    @property
    def line_count(self) -> int:
        return self.text.count("\n")

    def for_newline(self, newline: str) -> str:
        return self.text if newline == "\n" else self.text.replace("\n", newline)

    def encode(self, newline: str = "\n") -> bytes:
        return self.for_newline(newline).encode("utf-8")


@dataclass(frozen=True, slots=True)
class MatchResult:
    """Outcome of :func:`match_header`.

    Attributes:
        kind (MatchKind): Classification tier.
        insert_at (int): Byte offset right after the preamble.
        span (tuple[int, int] | None): Byte span of the existing header
            block (``STALE`` and delimited ``FOREIGN`` results). For
            ``STALE`` it starts at ``insert_at`` so blank lines between the
            preamble and the block are replaced too.
        found_id (str | None): SPDX expression declared by the block.
        newline (str): Line ending used by the file.
    """

    kind: MatchKind
    insert_at: int
    span: tuple[int, int] | None = None
    found_id: str | None = None
    newline: str = "\n"


def _decode_prefix(data: bytes, *, final: bool) -> str:
    # A prefix may end inside a multi-byte sequence; only a complete read is final.
    decoder = codecs.getincrementaldecoder("utf-8")(errors="strict")
    return decoder.decode(data, final=final)


def _detect_newline(text: str) -> str:
    idx = text.find("\n")
    if idx > 0 and text[idx - 1] == "\r":
        return "\r\n"
    return "\n"


def _skip_preamble(lines: list[str], style: CommentStyle) -> int:
    """Return the number of leading lines that must stay above the header."""
    idx = 0
    if lines and lines[0].startswith("#!"):
        idx = 1
    if (
        idx < len(lines)
        and isinstance(style, LineStyle)
        and style.prefix == "#"
        and _CODING_RE.match(lines[idx])
    ):
        idx += 1
    if idx == 0 and lines:
        first = lines[0].lstrip()
        if first.startswith("<?xml") or first.startswith("<?php"):
            idx = 1
    return idx


def _strip_markers(line: str, style: CommentStyle) -> str:
    s = line.strip()
    if isinstance(style, LineStyle):
        if s.startswith(style.prefix):
            s = s[len(style.prefix):]
        return s.strip()
    if s.startswith(style.open):
        s = s[len(style.open):]
    if s.endswith(style.close.strip()):
        s = s[: -len(style.close.strip())]
    cont = style.continuation.strip()
    s = s.strip()
    if cont and s.startswith(cont):
        s = s[len(cont):]
    return s.strip()


def _declared_id(lines: list[str], style: CommentStyle) -> tuple[str | None, int]:
    """Return the first declared SPDX expression and its line index (or -1)."""
    for i, line in enumerate(lines):
        m = _SPDX_RE.search(_strip_markers(line, style))
        if m:
            return m.group(1), i
    return None, -1


@dataclass(frozen=True, slots=True)
class _Block:
    start: int  # line index of the first block line
    end: int  # exclusive line index
    terminated: bool


def _closes(text: str, close: str) -> bool | None:
    """None when ``text`` has no close marker, else whether nothing follows it."""
    idx = text.find(close)
    if idx < 0:
        return None
    return not text[idx + len(close):].strip()


def _find_block(lines: list[str], start: int, style: CommentStyle, *, complete: bool) -> _Block | None:
    """Delimit the comment block starting at line ``start``.

    A block is unterminated when its end was not seen in ``lines`` (a line
    block running into the end of a partial read included) or when code
    shares the line with the close marker.
    """
    if start >= len(lines):
        return None
    if isinstance(style, LineStyle):
        end = start
        while end < len(lines) and lines[end].lstrip().startswith(style.prefix):
            end += 1
        if end == start:
            return None
        return _Block(start, end, complete or end < len(lines))
    if not lines[start].lstrip().startswith(style.open):
        return None
    close = style.close.strip()
    closed = _closes(lines[start].lstrip()[len(style.open):], close)
    end = start
    while closed is None and end + 1 < len(lines):
        end += 1
        closed = _closes(lines[end], close)
    if closed is None:
        return _Block(start, len(lines), False)
    return _Block(start, end + 1, closed)


def _stale_end(block_lines: list[str], id_line: int, expected: WrappedHeader) -> int:
    """Return the exclusive end (relative line index) of the old header in a line-comment block.

    Lines up to the identifier line belong to the header. After it, lines are
    taken while they occur verbatim in the expected header, or look like
    header text within the expected header's line count. Trailing bare
    markers are given back to the surrounding comment.
    """
    style = expected.style
    expected_lines = {line.strip() for line in expected.text.split("\n") if line.strip()}
    end = id_line + 1
    while end < len(block_lines):
        stripped = block_lines[end].strip()
        if stripped in expected_lines:
            end += 1
            continue
        if end < expected.line_count and _HEADERISH_RE.search(stripped):
            end += 1
            continue
        break
    bare = style.prefix if isinstance(style, LineStyle) else ""
    while end > id_line + 1 and block_lines[end - 1].strip() == bare:
        end -= 1
    return end


def match_header(leading: bytes, expected: WrappedHeader, *, complete: bool = True) -> MatchResult:
    """Classify the header at the top of a file.

    Line-comment styles that declare an alternative block form (``/* */``
    next to ``//``) also recognize a leading block written in that form; a
    stale one is replaced as a whole by the line-comment header.

    Args:
        leading (bytes): The first bytes of the file.
        expected (WrappedHeader): Header a compliant file starts with.
        complete (bool): True when ``leading`` holds the whole file. A
            partial read never yields a span reaching past its last whole
            line, and a block that may continue beyond it carries no span.

    Returns:
        MatchResult: Classification plus byte offsets for the rewrite.

    Raises:
        UnicodeDecodeError: If the leading bytes are not valid UTF-8.
    """
    bom = len(UTF8_BOM) if leading.startswith(UTF8_BOM) else 0
    text = _decode_prefix(leading[bom:], final=complete)
    newline = _detect_newline(text)
    lines = _LINE_RE.findall(text)
    if not complete and lines and not lines[-1].endswith("\n"):
        lines.pop()

    def offset(line_idx: int) -> int:
        return bom + len("".join(lines[:line_idx]).encode("utf-8"))

    first = _skip_preamble(lines, expected.style)
    insert_at = offset(first)
    body = "".join(lines[first:])
    if body.startswith(expected.for_newline(newline)):
        return MatchResult(MatchKind.CORRECT, insert_at, newline=newline)

    start = first
    while start < len(lines) and not lines[start].strip():
        start += 1
    style = expected.style
    block = _find_block(lines, start, style, complete=complete)
    if block is None and isinstance(style, LineStyle) and style.block is not None:
        style = style.block
        block = _find_block(lines, start, style, complete=complete)
    if block is None:
        return MatchResult(MatchKind.ABSENT, insert_at, newline=newline)

    block_lines = lines[block.start:block.end]
    found_id, id_line = _declared_id(block_lines, style)
    if found_id is not None and found_id.casefold() == expected.license_id.casefold():
        end = None
        if style is expected.style and isinstance(style, LineStyle):
            end = block.start + _stale_end(block_lines, id_line, expected)
            if end == block.end and not block.terminated:
                end = None
        elif block.terminated:
            end = block.end
        if end is not None:
            return MatchResult(
                MatchKind.STALE,
                insert_at,
                span=(insert_at, offset(end)),
                found_id=found_id,
                newline=newline,
            )
    if not block.terminated:
        return MatchResult(MatchKind.FOREIGN, insert_at, found_id=found_id, newline=newline)
    return MatchResult(
        MatchKind.FOREIGN,
        insert_at,
        span=(offset(block.start), offset(block.end)),
        found_id=found_id,
        newline=newline,
    )
