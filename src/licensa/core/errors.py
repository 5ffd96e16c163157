# errors.py
# SPDX-License-Identifier: MIT
"""Exception hierarchy for the header compliance engine.

Configuration, catalog and render errors are fatal and are raised before any
file is touched. :class:`FileIoError` is per-file: the engine catches it and
records a ``failed`` outcome instead of aborting the run.
"""

from __future__ import annotations

from collections.abc import Sequence

__all__ = [
    "LicensaError",
    "ConfigurationError",
    "LicenseNotFound",
    "CatalogUnavailable",
    "RenderError",
    "MissingField",
    "FileIoError",
]


class LicensaError(Exception):
    """Base class for all licensa errors."""


class ConfigurationError(LicensaError, ValueError):
    """Raised when the resolved configuration cannot drive a run."""


class LicenseNotFound(ConfigurationError, KeyError):
    """Raised when an SPDX identifier is not present in the catalog."""

    def __init__(self, license_id: str) -> None:
        self.license_id = license_id
        super().__init__(f'SPDX license ID "{license_id}" not found')

    def __str__(self) -> str:
        # KeyError.__str__ would repr() the message.
        return str(self.args[0])


class CatalogUnavailable(LicensaError):
    """Raised when license metadata cannot be loaded."""


class RenderError(LicensaError):
    """Raised when a header template cannot be rendered."""


class MissingField(RenderError):
    """Raised when a template references placeholders absent from the field map."""

    def __init__(self, names: Sequence[str]) -> None:
        self.names: tuple[str, ...] = tuple(names)
        self.name = self.names[0] if self.names else ""
        listed = ", ".join(self.names)
        super().__init__(f"missing value for template field(s): {listed}")


class FileIoError(LicensaError):
    """Raised when one file cannot be read, decoded or rewritten."""

    def __init__(self, path: str, detail: str) -> None:
        self.path = path
        self.detail = detail
        super().__init__(f"{path}: {detail}")
