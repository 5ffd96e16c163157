# template.py
# SPDX-License-Identifier: MIT
"""Header template rendering.

Placeholders are written ``{{name}}`` (inner whitespace allowed) and are
replaced verbatim with the field's string value. Substituted values are never
re-scanned, so a value that itself contains ``{{...}}`` is emitted literally.
Line structure comes from the template alone; only CRLF/CR line endings are
normalized to LF.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from typing import TYPE_CHECKING

from .errors import MissingField

if TYPE_CHECKING:  # pragma: no cover
    from .catalog import LicenseSpec

__all__ = ["PLACEHOLDER_RE", "find_placeholders", "render", "render_text"]

PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z_][A-Za-z0-9_.\-]*)\s*\}\}")

FieldMap = Mapping[str, str]


def find_placeholders(template: str) -> tuple[str, ...]:
    """Return placeholder names in first-occurrence order, without duplicates."""
    seen: dict[str, None] = {}
    for m in PLACEHOLDER_RE.finditer(template):
        seen.setdefault(m.group(1), None)
    return tuple(seen)


def _normalize_newlines(s: str) -> str:
    return s.replace("\r\n", "\n").replace("\r", "\n")


def render_text(template: str, fields: FieldMap) -> str:
    """Substitute ``fields`` into ``template``.

    Raises:
        MissingField: If any placeholder has no value in ``fields``.
    """
    missing = [name for name in find_placeholders(template) if name not in fields]
    if missing:
        raise MissingField(missing)
    return PLACEHOLDER_RE.sub(lambda m: str(fields[m.group(1)]), _normalize_newlines(template))


def render(spec: LicenseSpec, fields: FieldMap) -> str:
    """Render the plain (unwrapped) header text for a license."""
    return render_text(spec.header_template, fields)
