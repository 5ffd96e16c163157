# catalog.py
# SPDX-License-Identifier: MIT
"""In-memory license catalog keyed by SPDX identifier.

The catalog is populated once before a run (from the bundled templates or an
SPDX license-list JSON document) and is read-only afterwards. Every header
template embeds its ``SPDX-License-Identifier`` line literally so that the
matcher can recognise headers written by earlier runs.
"""

from __future__ import annotations

import json
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Protocol, runtime_checkable

from .errors import CatalogUnavailable, ConfigurationError, LicenseNotFound
from .log import get_logger
from .template import find_placeholders

log = get_logger(__name__)

__all__ = [
    "LicenseSpec",
    "LicenseCatalog",
    "CatalogResolver",
    "builtin_catalog",
    "load_catalog",
    "default_header_template",
    "SPDX_LINE_PREFIX",
]

SPDX_LINE_PREFIX = "SPDX-License-Identifier:"


def default_header_template(license_id: str) -> str:
    """Return the short copyright + SPDX header used when no text is bundled."""
    return f"Copyright {{{{year}}}} {{{{author}}}}\n{SPDX_LINE_PREFIX} {license_id}"


@dataclass(frozen=True, slots=True)
class LicenseSpec:
    """A catalog entry: SPDX id, display name and header template."""

    id: str
    name: str
    header_template: str

    @property
    def placeholders(self) -> tuple[str, ...]:
        return find_placeholders(self.header_template)

    def spdx_only(self) -> LicenseSpec:
        """Return a copy whose header is only the SPDX identifier line."""
        return replace(self, header_template=f"{SPDX_LINE_PREFIX} {self.id}")


@runtime_checkable
class CatalogResolver(Protocol):
    """Anything that can resolve an SPDX id to a :class:`LicenseSpec`."""

    def lookup(self, license_id: str) -> LicenseSpec:
        ...


class LicenseCatalog:
    """Case-insensitive mapping from SPDX id to :class:`LicenseSpec`."""

    def __init__(self, specs: Iterable[LicenseSpec] = ()) -> None:
        self._by_key: dict[str, LicenseSpec] = {}
        for spec in specs:
            self.add(spec)

    @staticmethod
    def _key(license_id: str) -> str:
        return license_id.strip().casefold()

    def add(self, spec: LicenseSpec) -> None:
        key = self._key(spec.id)
        if key in self._by_key:
            raise ConfigurationError(f"duplicate SPDX license ID in catalog: {spec.id}")
        self._by_key[key] = spec

    def get(self, license_id: str) -> LicenseSpec | None:
        return self._by_key.get(self._key(license_id))

    def lookup(self, license_id: str) -> LicenseSpec:
        """Return the spec for ``license_id`` or raise :class:`LicenseNotFound`."""
        spec = self.get(license_id)
        if spec is None:
            raise LicenseNotFound(license_id)
        return spec

    def ids(self) -> list[str]:
        return sorted((spec.id for spec in self._by_key.values()), key=str.casefold)

    def __contains__(self, license_id: object) -> bool:
        return isinstance(license_id, str) and self._key(license_id) in self._by_key

    def __iter__(self) -> Iterator[LicenseSpec]:
        for license_id in self.ids():
            yield self._by_key[self._key(license_id)]

    def __len__(self) -> int:
        return len(self._by_key)


# ---------------------------------------------------------------------------
# Bundled templates
# ---------------------------------------------------------------------------

_APACHE_2_HEADER = """\
Copyright {{year}} {{author}}
SPDX-License-Identifier: Apache-2.0

Licensed under the Apache License, Version 2.0 (the "License");
you may not use this file except in compliance with the License.
You may obtain a copy of the License at

    http://www.apache.org/licenses/LICENSE-2.0

Unless required by applicable law or agreed to in writing, software
distributed under the License is distributed on an "AS IS" BASIS,
WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
See the License for the specific language governing permissions and
limitations under the License."""

_MPL_2_HEADER = """\
Copyright {{year}} {{author}}
SPDX-License-Identifier: MPL-2.0

This Source Code Form is subject to the terms of the Mozilla Public
License, v. 2.0. If a copy of the MPL was not distributed with this
file, You can obtain one at https://mozilla.org/MPL/2.0/."""

_BUNDLED_NAMES: dict[str, str] = {
    "0BSD": "BSD Zero Clause License",
    "AGPL-3.0-only": "GNU Affero General Public License v3.0 only",
    "AGPL-3.0-or-later": "GNU Affero General Public License v3.0 or later",
    "Apache-2.0": "Apache License 2.0",
    "BSD-2-Clause": 'BSD 2-Clause "Simplified" License',
    "BSD-3-Clause": 'BSD 3-Clause "New" or "Revised" License',
    "BSL-1.0": "Boost Software License 1.0",
    "CC0-1.0": "Creative Commons Zero v1.0 Universal",
    "EPL-2.0": "Eclipse Public License 2.0",
    "GPL-2.0-only": "GNU General Public License v2.0 only",
    "GPL-2.0-or-later": "GNU General Public License v2.0 or later",
    "GPL-3.0-only": "GNU General Public License v3.0 only",
    "GPL-3.0-or-later": "GNU General Public License v3.0 or later",
    "ISC": "ISC License",
    "LGPL-2.1-only": "GNU Lesser General Public License v2.1 only",
    "LGPL-2.1-or-later": "GNU Lesser General Public License v2.1 or later",
    "LGPL-3.0-only": "GNU Lesser General Public License v3.0 only",
    "LGPL-3.0-or-later": "GNU Lesser General Public License v3.0 or later",
    "MIT": "MIT License",
    "MPL-2.0": "Mozilla Public License 2.0",
    "Unlicense": "The Unlicense",
    "Zlib": "zlib License",
}

_BUNDLED_TEMPLATES: dict[str, str] = {
    "Apache-2.0": _APACHE_2_HEADER,
    "MPL-2.0": _MPL_2_HEADER,
}


def _bundled_template(license_id: str) -> str:
    return _BUNDLED_TEMPLATES.get(license_id) or default_header_template(license_id)


def builtin_catalog() -> LicenseCatalog:
    """Return a catalog of commonly used licenses with bundled headers."""
    return LicenseCatalog(
        LicenseSpec(id=license_id, name=name, header_template=_bundled_template(license_id))
        for license_id, name in _BUNDLED_NAMES.items()
    )


def _spec_from_entry(entry: Mapping[str, object]) -> LicenseSpec | None:
    license_id = entry.get("licenseId") or entry.get("id")
    if not isinstance(license_id, str) or not license_id.strip():
        return None
    license_id = license_id.strip()
    name = entry.get("name")
    template = entry.get("headerTemplate")
    if not isinstance(template, str) or not template.strip():
        template = _bundled_template(license_id)
    return LicenseSpec(
        id=license_id,
        name=name if isinstance(name, str) and name else license_id,
        header_template=template,
    )


def load_catalog(path: str | Path, *, include_deprecated: bool = False) -> LicenseCatalog:
    """Load a catalog from an SPDX license-list JSON document.

    The document follows the ``licenses.json`` layout published by SPDX
    (``{"licenses": [{"licenseId": ..., "name": ...}, ...]}``). Entries may
    carry a ``headerTemplate``; otherwise the bundled template (or the short
    default) is used.

    Raises:
        CatalogUnavailable: If the file cannot be read or is malformed.
    """
    p = Path(path)
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except OSError as exc:
        raise CatalogUnavailable(f"failed to read license metadata file {p}: {exc}") from exc
    except ValueError as exc:
        raise CatalogUnavailable(f"invalid license metadata in {p}: {exc}") from exc

    entries = payload.get("licenses") if isinstance(payload, Mapping) else payload
    if not isinstance(entries, list):
        raise CatalogUnavailable(f"{p}: expected a 'licenses' array")

    catalog = LicenseCatalog()
    skipped = 0
    for entry in entries:
        if not isinstance(entry, Mapping):
            skipped += 1
            continue
        if entry.get("isDeprecatedLicenseId") and not include_deprecated:
            continue
        spec = _spec_from_entry(entry)
        if spec is None:
            skipped += 1
            continue
        if spec.id in catalog:
            log.debug("Duplicate license id %s in %s; keeping first entry", spec.id, p)
            continue
        catalog.add(spec)
    if skipped:
        log.warning("Ignored %d malformed license entries in %s", skipped, p)
    log.debug("Loaded %d licenses from %s", len(catalog), p)
    return catalog
