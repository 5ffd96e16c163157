import pytest

from licensa.core.comments import (
    C_BLOCK,
    DASH,
    HASH,
    HTML_BLOCK,
    SLASH,
    SLASH_ONLY,
    CommentStyleTable,
    style_for,
    wrap,
)


def test_style_for_extensions_and_names():
    assert style_for("src/main.rs") == SLASH
    assert style_for("pkg/mod.py") == HASH
    assert style_for("Makefile") == HASH
    assert style_for("docker/Dockerfile") == HASH
    assert style_for("STYLE.CSS") == C_BLOCK
    assert style_for("index.html") == HTML_BLOCK
    assert style_for("query.sql") == DASH


def test_slash_styles_know_their_block_form():
    assert style_for("lib.c").block == C_BLOCK
    assert style_for("app.ts").block == C_BLOCK
    assert style_for("build.zig") == SLASH_ONLY
    assert style_for("Program.fs").block is None
    assert wrap("x", SLASH) == wrap("x", SLASH_ONLY) == "// x\n"


def test_unknown_files_are_unsupported():
    assert style_for("notes.unknownext") is None
    assert style_for("README") is None


def test_wrap_line_style():
    text = "Copyright 2024 Jane Doe\nSPDX-License-Identifier: MIT"
    assert wrap(text, SLASH) == "// Copyright 2024 Jane Doe\n// SPDX-License-Identifier: MIT\n"


def test_wrap_blank_lines_become_bare_markers():
    assert wrap("a\n\nb\n", HASH) == "# a\n#\n# b\n"
    assert wrap("a\n\nb", C_BLOCK) == "/*\n * a\n *\n * b\n */\n"
    assert wrap("a", HTML_BLOCK) == "<!--\n  a\n-->\n"


def test_wrap_is_deterministic():
    assert wrap("x\ny", C_BLOCK) == wrap("x\ny", C_BLOCK)


def test_custom_tables():
    table = CommentStyleTable(ext_styles={".foo": DASH}, name_styles={})
    assert table.style_for("a.FOO") == DASH
    assert table("b.py") is None
    assert table.style_for("Makefile") is None


def test_lexer_fallback_classifies_unlisted_extensions():
    pytest.importorskip("pygments")
    table = CommentStyleTable(ext_styles={}, name_styles={}, lexer_fallback=True)
    assert table.style_for("script.py") == HASH
    assert table.style_for("file.nosuchextension") is None
