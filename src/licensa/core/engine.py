# engine.py
# SPDX-License-Identifier: MIT
"""Apply engine: classify every scanned file and insert or update headers.

The decision table per match result:

============  ==================  ===========================
match         check mode          write mode
============  ==================  ===========================
absent        non_compliant       insert after preamble
stale         non_compliant       replace old header
correct       already_compliant   already_compliant
foreign       skipped(foreign)    skipped(foreign)
============  ==================  ===========================

With ``force`` a foreign block that declares a license is replaced, and a
foreign block without any SPDX identifier keeps its place below a newly
inserted header. Writes go to a temporary file in the same directory that is
then renamed over the original.
"""
from __future__ import annotations

import contextlib
import functools
import os
import shutil
import tempfile
import time
from collections.abc import Callable, Iterable, Iterator, Sequence
from dataclasses import replace
from pathlib import Path

from ..sources.fs import ScanEntry, read_file_prefix, scan
from .catalog import CatalogResolver, LicenseSpec, builtin_catalog, load_catalog
from .comments import CommentStyle, CommentStyleTable, wrap
from .concurrency import Executor, ExecutorConfig
from .config import ApplyMode, LicensaConfig
from .errors import ConfigurationError, FileIoError
from .log import get_logger
from .matcher import UTF8_BOM, MatchKind, MatchResult, WrappedHeader, match_header
from .report import ApplyResult, Outcome, ReportBuilder, RunReport
from .template import render

log = get_logger(__name__)

RenderFn = Callable[[CommentStyle], WrappedHeader]
StyleFn = Callable[[Path], "CommentStyle | None"]
MatchFn = Callable[..., MatchResult]

DEFAULT_PREFIX_BYTES = 8192

__all__ = [
    "apply_all",
    "apply_file",
    "atomic_write",
    "resolve_license",
    "make_render_fn",
    "run_workspace",
]


def atomic_write(path: Path, data: bytes) -> None:
    """Replace ``path`` with ``data`` via a temp file and ``os.replace``.

    The original file mode is preserved. On any error the temp file is
    removed and the original is left untouched.
    """
    if not os.access(path, os.W_OK):
        raise PermissionError(13, "Permission denied", str(path))
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as fh:
            fh.write(data)
            fh.flush()
            os.fsync(fh.fileno())
        shutil.copymode(path, tmp)
        os.replace(tmp, path)
    except BaseException:
        with contextlib.suppress(OSError):
            os.unlink(tmp)
        raise


def _inserted(data: bytes, at: int, header: bytes, newline: bytes) -> bytes:
    head, rest = data[:at], data[at:]
    if head and head != UTF8_BOM and not head.endswith(b"\n"):
        head += newline
    if rest and not rest.startswith(newline) and not rest.startswith(b"\n"):
        header += newline
    return head + header + rest


def _read_prefix(entry: ScanEntry, limit: int | None) -> tuple[bytes, bool]:
    try:
        leading, size = read_file_prefix(entry.path, limit)
    except OSError as exc:
        raise FileIoError(entry.rel, f"read failed: {exc.strerror or exc}") from exc
    return leading, len(leading) >= size


def _classify(
    rel: str, match_fn: MatchFn, leading: bytes, expected: WrappedHeader, complete: bool
) -> MatchResult:
    try:
        return match_fn(leading, expected, complete=complete)
    except UnicodeDecodeError as exc:
        raise FileIoError(rel, f"not valid UTF-8 ({exc.reason} at byte {exc.start})") from exc


def _rewrite(entry: ScanEntry, leading: bytes, build: Callable[[bytes], bytes]) -> None:
    try:
        data = entry.path.read_bytes()
        if not data.startswith(leading):
            raise FileIoError(entry.rel, "file changed while being processed")
        atomic_write(entry.path, build(data))
    except OSError as exc:
        raise FileIoError(entry.rel, f"write failed: {exc.strerror or exc}") from exc


def apply_file(
    entry: ScanEntry,
    render_fn: RenderFn,
    style_fn: StyleFn,
    match_fn: MatchFn = match_header,
    mode: str = ApplyMode.CHECK,
    *,
    force: bool = False,
    max_prefix_bytes: int = DEFAULT_PREFIX_BYTES,
) -> ApplyResult:
    """Classify one file and, in write mode, fix its header.

    Raises:
        FileIoError: If the file cannot be read, decoded or rewritten.
    """
    rel = entry.rel
    style = style_fn(entry.path)
    if style is None:
        log.debug("Skipping %s: unsupported file type", rel)
        return ApplyResult(rel, Outcome.SKIPPED, reason="unsupported")

    expected = render_fn(style)
    header_len = len(expected.encode("\r\n"))
    leading, complete = _read_prefix(entry, max(max_prefix_bytes, 2 * header_len + 1024))
    result = _classify(rel, match_fn, leading, expected, complete)
    if force and not complete and result.kind is MatchKind.FOREIGN and result.span is None:
        # The leading block may run past the bytes read; delimit it on the whole file.
        leading, complete = _read_prefix(entry, None)
        result = _classify(rel, match_fn, leading, expected, complete)

    kind = result.kind
    log.debug("%s: %s", rel, kind.value)
    if kind is MatchKind.CORRECT:
        return ApplyResult(rel, Outcome.ALREADY_COMPLIANT)

    if kind is MatchKind.FOREIGN and not force:
        return ApplyResult(rel, Outcome.SKIPPED, reason="foreign", found_id=result.found_id)

    replace_span = result.span if kind is MatchKind.STALE else None
    if kind is MatchKind.FOREIGN and result.found_id is not None and result.span is not None:
        replace_span = result.span

    if not ApplyMode.is_write(mode):
        return ApplyResult(rel, Outcome.NON_COMPLIANT, reason=kind.value, found_id=result.found_id)

    header = expected.encode(result.newline)
    newline = result.newline.encode("ascii")
    if replace_span is not None:
        end = replace_span[1]
        _rewrite(entry, leading, lambda data: data[:result.insert_at] + header + data[end:])
        log.debug("Updated header in %s", rel)
        return ApplyResult(rel, Outcome.UPDATED, found_id=result.found_id)

    _rewrite(entry, leading, lambda data: _inserted(data, result.insert_at, header, newline))
    log.debug("Inserted header into %s", rel)
    return ApplyResult(rel, Outcome.INSERTED, found_id=result.found_id)


def apply_all(
    entries: Iterable[ScanEntry],
    render_fn: RenderFn,
    style_fn: StyleFn,
    match_fn: MatchFn = match_header,
    mode: str = ApplyMode.CHECK,
    *,
    force: bool = False,
    max_workers: int = 1,
    window: int | None = None,
    timeout: float | None = None,
    max_prefix_bytes: int = DEFAULT_PREFIX_BYTES,
) -> RunReport:
    """Process scanned entries and return the sorted run report.

    Per-file errors never abort the batch: they are recorded as ``failed``.
    Non-included entries (scan errors) are recorded as ``skipped`` with the
    error detail. When ``timeout`` elapses no further files are scheduled;
    files already in flight finish and the report is marked ``timed_out``.

    Args:
        entries: Output of :func:`licensa.sources.fs.scan`.
        render_fn: Returns the wrapped header for a comment style.
        style_fn: Returns the comment style for a path, or None.
        match_fn: Header classifier, :func:`match_header` by default.
        mode: :class:`ApplyMode` value.
        force: Override foreign-header protection.
        max_workers: Worker threads; 1 runs serially in the caller.
        window: Maximum files in flight when running in parallel.
        timeout: Scheduling deadline in seconds.
        max_prefix_bytes: Leading bytes read per file.
    """
    mode = ApplyMode.normalize(mode)
    builder = ReportBuilder(mode)
    deadline = None if timeout is None else time.monotonic() + timeout

    def should_stop() -> bool:
        return deadline is not None and time.monotonic() >= deadline

    def included() -> Iterator[ScanEntry]:
        for entry in entries:
            if entry.included:
                yield entry
                continue
            builder.add_scan_error(
                ApplyResult(entry.rel, Outcome.SKIPPED, reason="scan-error", error=entry.error)
            )

    def work(entry: ScanEntry) -> ApplyResult:
        try:
            return apply_file(
                entry,
                render_fn,
                style_fn,
                match_fn,
                mode,
                force=force,
                max_prefix_bytes=max_prefix_bytes,
            )
        except FileIoError as exc:
            log.warning("Failed to process %s: %s", entry.rel, exc.detail)
            return ApplyResult(entry.rel, Outcome.FAILED, error=exc.detail)

    def on_error(entry: ScanEntry, exc: BaseException) -> None:
        log.error("Unexpected error processing %s", entry.rel, exc_info=exc)
        builder.add(ApplyResult(entry.rel, Outcome.FAILED, error=f"{type(exc).__name__}: {exc}"))

    timed_out = False
    if max_workers <= 1:
        for entry in included():
            if should_stop():
                timed_out = True
                break
            try:
                builder.add(work(entry))
            except Exception as exc:  # noqa: BLE001
                on_error(entry, exc)
    else:
        executor = Executor(ExecutorConfig.from_settings(max_workers, window))
        timed_out = executor.map_unordered(
            included(),
            work,
            builder.add,
            on_error=on_error,
            should_stop=should_stop,
        )
    if timed_out:
        log.warning("Timeout reached; remaining files were not scheduled")
    return builder.finalize(timed_out=timed_out)


# ---------------------------------------------------------------------------
# Workspace orchestration
# ---------------------------------------------------------------------------

def resolve_license(config: LicensaConfig, catalog: CatalogResolver | None = None) -> LicenseSpec:
    """Look up the configured license, honoring ``generator.spdx_only``.

    Raises:
        ConfigurationError: If the id is unknown or not allowed.
        CatalogUnavailable: If the configured license file cannot be read.
    """
    gen = config.generator
    if catalog is None:
        catalog = load_catalog(gen.license_file) if gen.license_file else builtin_catalog()
    spec = catalog.lookup(config.license_type)
    if not gen.allows(spec.id):
        raise ConfigurationError(f"license {spec.id!r} is not in allowed licenses {gen.allowed_licenses}.")
    return spec.spdx_only() if gen.spdx_only else spec


def make_render_fn(spec: LicenseSpec, fields) -> RenderFn:
    """Render once and return a per-style wrapper.

    Raises:
        MissingField: If ``fields`` lacks a placeholder of the template.
    """
    rendered = render(spec, fields)

    @functools.lru_cache(maxsize=None)
    def render_fn(style: CommentStyle) -> WrappedHeader:
        return WrappedHeader(text=wrap(rendered, style), style=style, license_id=spec.id)

    return render_fn


def _entries_for(roots: Sequence[Path], config: LicensaConfig) -> Iterator[ScanEntry]:
    gen = config.generator
    multi = len(roots) > 1
    for root in roots:
        if root.is_file():
            yield ScanEntry(path=root.resolve(), rel=root.as_posix())
            continue
        for entry in scan(
            root,
            gen.ignore_patterns,
            gen.gitignore,
            skip_hidden=config.engine.skip_hidden,
        ):
            if multi:
                entry = replace(entry, rel=f"{root.as_posix().rstrip('/')}/{entry.rel}")
            yield entry


def _log_summary(report: RunReport) -> None:
    counts = report.counts
    level = log.info if report.ok and not report.scan_errors else log.warning
    level(
        "Header summary (%s): inserted=%d updated=%d compliant=%d non_compliant=%d "
        "skipped=%d failed=%d scan_errors=%d",
        report.mode,
        counts[Outcome.INSERTED.value],
        counts[Outcome.UPDATED.value],
        counts[Outcome.ALREADY_COMPLIANT.value],
        counts[Outcome.NON_COMPLIANT.value],
        counts[Outcome.SKIPPED.value],
        counts[Outcome.FAILED.value],
        report.scan_errors,
    )


def run_workspace(
    roots: str | os.PathLike[str] | Sequence[str | os.PathLike[str]],
    config: LicensaConfig,
    *,
    mode: str = ApplyMode.CHECK,
    catalog: CatalogResolver | None = None,
) -> RunReport:
    """Validate config, resolve and render the header, then scan and apply.

    Every fatal problem (invalid config, unknown or disallowed license,
    missing template field, unreadable catalog, missing root) is raised
    before any file is read or written.
    """
    if isinstance(roots, (str, os.PathLike)):
        roots = [roots]
    root_paths = [Path(r) for r in roots] or [Path(".")]
    for root in root_paths:
        if not root.exists():
            raise ConfigurationError(f"path does not exist: {root}")

    mode = ApplyMode.normalize(mode)
    config.validate()
    spec = resolve_license(config, catalog)
    render_fn = make_render_fn(spec, config.field_map(spec))
    eng = config.engine
    style_fn = CommentStyleTable(lexer_fallback=eng.lexer_fallback)

    log.info("Running %s for %s (%s)", mode, spec.id, ", ".join(str(r) for r in root_paths))
    report = apply_all(
        _entries_for(root_paths, config),
        render_fn,
        style_fn,
        match_header,
        mode,
        force=eng.force,
        max_workers=eng.max_workers,
        window=eng.window,
        timeout=eng.timeout,
        max_prefix_bytes=eng.max_prefix_bytes,
    )
    _log_summary(report)
    return report
