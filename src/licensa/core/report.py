# report.py
# SPDX-License-Identifier: MIT
"""Per-file outcomes and the aggregated run report."""

from __future__ import annotations

import threading
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

__all__ = ["Outcome", "ApplyResult", "Failure", "RunReport", "ReportBuilder"]


class Outcome(str, Enum):
    INSERTED = "inserted"
    UPDATED = "updated"
    ALREADY_COMPLIANT = "already_compliant"
    NON_COMPLIANT = "non_compliant"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class ApplyResult:
    """Outcome for one file.

    ``reason`` explains ``SKIPPED`` (``"unsupported"``, ``"foreign"``,
    ``"scan-error"``) and ``NON_COMPLIANT`` (``"absent"``, ``"stale"``);
    ``error`` carries the detail for ``FAILED`` and scan errors.
    """

    path: str
    outcome: Outcome
    reason: str | None = None
    error: str | None = None
    found_id: str | None = None

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"path": self.path, "outcome": self.outcome.value}
        if self.reason is not None:
            data["reason"] = self.reason
        if self.error is not None:
            data["error"] = self.error
        if self.found_id is not None:
            data["found_id"] = self.found_id
        return data


@dataclass(frozen=True, slots=True)
class Failure:
    path: str
    error: str


@dataclass(frozen=True, slots=True)
class RunReport:
    """Immutable summary of one apply run, sorted by path."""

    mode: str
    results: tuple[ApplyResult, ...] = ()
    scan_errors: int = 0
    timed_out: bool = False

    @property
    def counts(self) -> dict[str, int]:
        counter = Counter(r.outcome for r in self.results)
        return {outcome.value: counter.get(outcome, 0) for outcome in Outcome}

    def count(self, outcome: Outcome) -> int:
        return sum(1 for r in self.results if r.outcome is outcome)

    @property
    def failures(self) -> list[Failure]:
        return [
            Failure(r.path, r.error or "")
            for r in self.results
            if r.outcome is Outcome.FAILED
        ]

    @property
    def modified(self) -> list[str]:
        return [r.path for r in self.results if r.outcome in (Outcome.INSERTED, Outcome.UPDATED)]

    @property
    def ok(self) -> bool:
        """True when nothing failed and (in check mode) every file is compliant."""
        return not self.count(Outcome.FAILED) and not self.count(Outcome.NON_COMPLIANT)

    def as_dict(self) -> dict[str, object]:
        """Return a stable dict shape for JSON output."""
        return {
            "mode": self.mode,
            "ok": self.ok,
            "counts": self.counts,
            "scan_errors": int(self.scan_errors),
            "timed_out": bool(self.timed_out),
            "failures": [{"path": f.path, "error": f.error} for f in self.failures],
            "results": [r.as_dict() for r in self.results],
        }


@dataclass
class ReportBuilder:
    """Thread-safe accumulator used while workers are running."""

    mode: str
    _results: list[ApplyResult] = field(default_factory=list)
    _scan_errors: int = 0
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def add(self, result: ApplyResult) -> None:
        with self._lock:
            self._results.append(result)

    def add_scan_error(self, result: ApplyResult) -> None:
        with self._lock:
            self._results.append(result)
            self._scan_errors += 1

    def finalize(self, *, timed_out: bool = False) -> RunReport:
        with self._lock:
            results = tuple(sorted(self._results, key=lambda r: r.path))
            return RunReport(
                mode=self.mode,
                results=results,
                scan_errors=self._scan_errors,
                timed_out=timed_out,
            )
