# comments.py
# SPDX-License-Identifier: MIT
"""Comment syntax table and header wrapping.

A comment style is one of two frozen variants: :class:`LineStyle` (every
header line carries a prefix) or :class:`BlockStyle` (open marker, prefixed
interior lines, close marker). Files are classified by exact filename first,
then by lowercase extension. Unknown files are unsupported and are skipped by
the engine.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import PurePath
from typing import Union

from .log import get_logger

log = get_logger(__name__)

__all__ = [
    "LineStyle",
    "BlockStyle",
    "CommentStyle",
    "HASH",
    "SLASH",
    "SLASH_ONLY",
    "DASH",
    "C_BLOCK",
    "HTML_BLOCK",
    "EXT_STYLES",
    "NAME_STYLES",
    "CommentStyleTable",
    "style_for",
    "wrap",
]


@dataclass(frozen=True, slots=True)
class BlockStyle:
    """Block comments, e.g. ``/*`` ... ``*/``.

    ``continuation`` prefixes every header line between the open and close
    markers, which sit on lines of their own.
    """

    open: str
    continuation: str
    close: str


@dataclass(frozen=True, slots=True)
class LineStyle:
    """Line comments, e.g. ``#`` or ``//``.

    ``block`` is a block comment form the language also accepts. Existing
    headers written in it are recognized; new headers always use ``prefix``.
    """

    prefix: str
    block: BlockStyle | None = None


CommentStyle = Union[LineStyle, BlockStyle]

C_BLOCK = BlockStyle("/*", " * ", " */")
HASH = LineStyle("#")
SLASH = LineStyle("//", block=C_BLOCK)
SLASH_ONLY = LineStyle("//")
DASH = LineStyle("--")
SEMICOLON = LineStyle(";")
PERCENT = LineStyle("%")
QUOTE = LineStyle("'")
VIM = LineStyle('"')
REM = LineStyle("REM")
RST = LineStyle("..")
HTML_BLOCK = BlockStyle("<!--", "  ", "-->")
ML_BLOCK = BlockStyle("(*", " * ", " *)")
JINJA_BLOCK = BlockStyle("{#", "  ", "#}")
ERB_BLOCK = BlockStyle("<%#", "  ", "%>")
HANDLEBARS_BLOCK = BlockStyle("{{!--", "  ", "--}}")


def _exts(style: CommentStyle, *exts: str) -> dict[str, CommentStyle]:
    return {ext: style for ext in exts}


# Keep suffixes lowercase and include the leading dot.
EXT_STYLES: dict[str, CommentStyle] = {
    **_exts(
        HASH,
        ".py", ".pyi", ".pyw", ".pyx", ".pxd",
        ".sh", ".bash", ".zsh", ".fish", ".ksh",
        ".rb", ".rake", ".gemspec",
        ".pl", ".pm", ".t",
        ".r", ".jl", ".cr", ".nim",
        ".ex", ".exs",
        ".ps1", ".psm1", ".psd1",
        ".tf", ".tfvars", ".hcl", ".nix",
        ".toml", ".yaml", ".yml", ".cfg", ".conf",
        ".cmake", ".mk", ".dockerfile", ".coffee", ".gd",
    ),
    **_exts(
        SLASH,
        ".c", ".h", ".cc", ".hh", ".cpp", ".hpp", ".cxx", ".hxx", ".c++", ".h++",
        ".cs", ".java", ".kt", ".kts", ".scala", ".sc", ".groovy", ".gradle",
        ".go", ".rs", ".swift", ".dart", ".v", ".sv", ".svh",
        ".js", ".jsx", ".mjs", ".cjs", ".ts", ".tsx", ".mts", ".cts",
        ".m", ".mm", ".proto", ".sol", ".php", ".scss", ".sass", ".less",
        ".jsonc", ".json5", ".hx", ".d",
    ),
    **_exts(SLASH_ONLY, ".fs", ".fsi", ".fsx", ".zig"),
    **_exts(DASH, ".sql", ".lua", ".hs", ".lhs", ".elm", ".ada", ".adb", ".ads", ".vhd", ".vhdl", ".purs"),
    **_exts(SEMICOLON, ".lisp", ".lsp", ".clj", ".cljs", ".cljc", ".edn", ".el", ".scm", ".ss", ".rkt", ".asm", ".ini"),
    **_exts(PERCENT, ".tex", ".sty", ".erl", ".hrl"),
    **_exts(QUOTE, ".vb", ".vbs", ".bas"),
    **_exts(VIM, ".vim"),
    **_exts(REM, ".bat", ".cmd"),
    **_exts(RST, ".rst"),
    **_exts(C_BLOCK, ".css"),
    **_exts(HTML_BLOCK, ".html", ".htm", ".xhtml", ".xml", ".xsd", ".xsl", ".xslt", ".svg", ".vue", ".svelte", ".md", ".markdown"),
    **_exts(ML_BLOCK, ".ml", ".mli", ".sml", ".fun"),
    **_exts(JINJA_BLOCK, ".j2", ".jinja", ".jinja2", ".njk"),
    **_exts(ERB_BLOCK, ".erb"),
    **_exts(HANDLEBARS_BLOCK, ".hbs", ".handlebars"),
}

NAME_STYLES: dict[str, CommentStyle] = {
    "Makefile": HASH,
    "makefile": HASH,
    "GNUmakefile": HASH,
    "Dockerfile": HASH,
    "Containerfile": HASH,
    "CMakeLists.txt": HASH,
    "BUILD": HASH,
    "BUILD.bazel": HASH,
    "WORKSPACE": HASH,
    "Justfile": HASH,
    "justfile": HASH,
    "Rakefile": HASH,
    "Gemfile": HASH,
    "Vagrantfile": HASH,
    "Pipfile": HASH,
    "Jenkinsfile": SLASH,
}

# Pygments lexer aliases mapped onto the styles above.
_LEXER_ALIAS_STYLES: dict[str, CommentStyle] = {
    "python": HASH,
    "bash": HASH,
    "sh": HASH,
    "ruby": HASH,
    "perl": HASH,
    "yaml": HASH,
    "toml": HASH,
    "make": HASH,
    "docker": HASH,
    "cmake": HASH,
    "c": SLASH,
    "cpp": SLASH,
    "csharp": SLASH,
    "java": SLASH,
    "javascript": SLASH,
    "typescript": SLASH,
    "go": SLASH,
    "rust": SLASH,
    "kotlin": SLASH,
    "scala": SLASH,
    "swift": SLASH,
    "sql": DASH,
    "lua": DASH,
    "haskell": DASH,
    "css": C_BLOCK,
    "html": HTML_BLOCK,
    "xml": HTML_BLOCK,
}


def wrap(text: str, style: CommentStyle) -> str:
    """Wrap rendered header text in comment markers.

    Returns the exact text expected at the top of a compliant file. The
    result always ends with a single newline; blank template lines become
    bare markers so no line carries trailing whitespace.
    """
    lines = text.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    if isinstance(style, LineStyle):
        out = [f"{style.prefix} {line}" if line.strip() else style.prefix for line in lines]
    elif isinstance(style, BlockStyle):
        bare = style.continuation.rstrip()
        out = [style.open]
        out.extend(f"{style.continuation}{line}" if line.strip() else bare for line in lines)
        out.append(style.close)
    else:
        raise TypeError(f"unsupported comment style: {style!r}")
    return "\n".join(out) + "\n"


class CommentStyleTable:
    """Resolve the comment style for a path.

    Args:
        ext_styles (Mapping[str, CommentStyle] | None): Extension table;
            defaults to :data:`EXT_STYLES`.
        name_styles (Mapping[str, CommentStyle] | None): Exact filename
            table; defaults to :data:`NAME_STYLES`.
        lexer_fallback (bool): Ask Pygments for a lexer when neither table
            matches. Requires the ``pygments`` package.
    """

    def __init__(
        self,
        ext_styles: Mapping[str, CommentStyle] | None = None,
        name_styles: Mapping[str, CommentStyle] | None = None,
        *,
        lexer_fallback: bool = False,
    ) -> None:
        self.ext_styles = dict(EXT_STYLES if ext_styles is None else ext_styles)
        self.name_styles = dict(NAME_STYLES if name_styles is None else name_styles)
        self._lexer_for_filename = None
        self._lexer_not_found: type[Exception] = LookupError
        if lexer_fallback:
            try:
                from pygments.lexers import get_lexer_for_filename
                from pygments.util import ClassNotFound
            except Exception as exc:  # pragma: no cover - optional dependency
                raise ImportError(
                    "lexer_fallback requires the 'pygments' package."
                ) from exc
            self._lexer_for_filename = get_lexer_for_filename
            self._lexer_not_found = ClassNotFound

    def _style_from_lexer(self, name: str) -> CommentStyle | None:
        try:
            lexer = self._lexer_for_filename(name)  # type: ignore[misc]
        except self._lexer_not_found:
            return None
        for alias in getattr(lexer, "aliases", ()):
            style = _LEXER_ALIAS_STYLES.get(alias)
            if style is not None:
                log.debug("Classified %s via lexer alias %s", name, alias)
                return style
        return None

    def style_for(self, path: str | PurePath) -> CommentStyle | None:
        """Return the comment style for ``path`` or None when unsupported."""
        name = PurePath(path).name
        style = self.name_styles.get(name)
        if style is not None:
            return style
        suffix = PurePath(name).suffix.lower()
        if suffix:
            style = self.ext_styles.get(suffix)
            if style is not None:
                return style
        if self._lexer_for_filename is not None:
            return self._style_from_lexer(name)
        return None

    __call__ = style_for


_DEFAULT_TABLE = CommentStyleTable()


def style_for(path: str | PurePath) -> CommentStyle | None:
    """Classify ``path`` against the default static table."""
    return _DEFAULT_TABLE.style_for(path)
