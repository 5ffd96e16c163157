# __init__.py
# SPDX-License-Identifier: MIT
"""
Top-level package exports for :mod:`licensa`.

Licensa keeps source files carrying a correct license header. The usual
entry point is :func:`run_workspace`, which validates a
:class:`LicensaConfig`, resolves the license from the catalog, scans the
workspace and inserts, updates or reports headers.

Lower-level pieces (the scanner, comment syntax table, template renderer,
header matcher and :func:`apply_all`) are exported for callers that need to
wire their own pipeline.

Examples:
    Check a directory without writing::

        >>> from licensa import LicensaConfig, run_workspace
        >>> cfg = LicensaConfig(license_type="MIT", author="Jane Doe", year=2024)
        >>> report = run_workspace("path/to/repo", cfg, mode="check")
        >>> report.ok
"""


from __future__ import annotations

# ---------------------------------------------------------------------------
# Package version
# ---------------------------------------------------------------------------
try:
    from importlib.metadata import version as _pkg_version

    __version__ = _pkg_version("licensa")
except Exception: # PackageNotFoundError or runtime env oddities
    __version__ = "0.0.0+unknown"


from .core.catalog import LicenseCatalog, LicenseSpec, builtin_catalog, load_catalog
from .core.comments import BlockStyle, CommentStyleTable, LineStyle, style_for, wrap
from .core.config import ApplyMode, LicensaConfig, find_config_file, load_config_from_path
from .core.engine import apply_all, run_workspace
from .core.errors import (
    CatalogUnavailable,
    ConfigurationError,
    FileIoError,
    LicensaError,
    LicenseNotFound,
    MissingField,
    RenderError,
)
from .core.log import configure_logging, get_logger, temp_level
from .core.matcher import MatchKind, MatchResult, WrappedHeader, match_header
from .core.report import ApplyResult, Outcome, RunReport
from .core.template import render
from .sources.fs import ScanEntry, scan

__all__ = [
    "__version__",
    "ApplyMode",
    "ApplyResult",
    "BlockStyle",
    "CatalogUnavailable",
    "CommentStyleTable",
    "ConfigurationError",
    "FileIoError",
    "LicensaConfig",
    "LicensaError",
    "LicenseCatalog",
    "LicenseNotFound",
    "LicenseSpec",
    "LineStyle",
    "MatchKind",
    "MatchResult",
    "MissingField",
    "Outcome",
    "RenderError",
    "RunReport",
    "ScanEntry",
    "WrappedHeader",
    "apply_all",
    "builtin_catalog",
    "configure_logging",
    "find_config_file",
    "get_logger",
    "load_catalog",
    "load_config_from_path",
    "match_header",
    "render",
    "run_workspace",
    "scan",
    "style_for",
    "temp_level",
    "wrap",
]
