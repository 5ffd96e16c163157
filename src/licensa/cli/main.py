# main.py
# SPDX-License-Identifier: MIT

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Optional, Sequence

from ..core.catalog import builtin_catalog, load_catalog
from ..core.config import (
    CONFIG_FILENAMES,
    ApplyMode,
    LicensaConfig,
    LoggingConfig,
    find_config_file,
    load_config_from_path,
)
from ..core.engine import run_workspace
from ..core.errors import LicensaError
from ..core.report import Outcome, RunReport

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_CONFIG = 2


def _add_header_options(p: argparse.ArgumentParser) -> None:
    p.add_argument("--type", dest="license_type", help="SPDX license id (overrides the config file).")
    p.add_argument("--author", help="Copyright holder.")
    p.add_argument("--year", type=int, help="Copyright year.")
    p.add_argument(
        "--ignore",
        action="append",
        default=None,
        metavar="PATTERN",
        help="Gitignore-style pattern to exclude (repeatable).",
    )
    p.add_argument("--no-gitignore", action="store_true", help="Do not honor .gitignore files.")
    p.add_argument("--spdx-only", action="store_true", help="Write only the SPDX-License-Identifier line.")


def _build_parser() -> argparse.ArgumentParser:
    """Build the top-level Licensa CLI argument parser.

    Returns:
        argparse.ArgumentParser: Configured argument parser for the CLI.
    """
    parser = argparse.ArgumentParser(prog="licensa", description="License header compliance tool")
    parser.add_argument(
        "--log-level",
        default=None,
        help="Logging level (e.g., DEBUG, INFO, WARNING). Defaults to the config file value.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("apply", "Insert missing headers and update stale ones."),
        ("verify", "Report files without a correct header; never writes."),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("paths", nargs="*", help="Directories or files to process (default: current directory).")
        sub.add_argument("-c", "--config", help="Path to .licensarc, JSON or TOML config file.")
        _add_header_options(sub)
        sub.add_argument("--force", action="store_true", help="Also rewrite foreign header comments.")
        sub.add_argument("--workers", type=int, help="Number of worker threads.")
        sub.add_argument("--format", choices=["text", "json"], default="text", help="Report format.")

    init_p = subparsers.add_parser("init", help="Write a .licensarc config file.")
    init_p.add_argument("directory", nargs="?", default=".", help="Directory to write the config into.")
    _add_header_options(init_p)
    init_p.add_argument("--overwrite", action="store_true", help="Replace an existing .licensarc.")

    lic_p = subparsers.add_parser("licenses", help="List available SPDX license ids.")
    lic_p.add_argument("--license-file", help="SPDX license-list JSON to read instead of the bundled catalog.")

    return parser


def _apply_overrides(cfg: LicensaConfig, args: argparse.Namespace) -> None:
    """Apply CLI overrides to a config object in place."""
    if args.license_type:
        cfg.license_type = args.license_type
    if args.author:
        cfg.author = args.author
    if args.year is not None:
        cfg.year = args.year
    if args.ignore:
        cfg.generator.ignore_patterns = list(cfg.generator.ignore_patterns) + list(args.ignore)
    if args.no_gitignore:
        cfg.generator.gitignore = False
    if args.spdx_only:
        cfg.generator.spdx_only = True
    if getattr(args, "force", False):
        cfg.engine.force = True
    if getattr(args, "workers", None) is not None:
        cfg.engine.max_workers = int(args.workers)


def _load_config(args: argparse.Namespace) -> LicensaConfig:
    """Load the explicit config, else the one found next to the first path."""
    if getattr(args, "config", None):
        return load_config_from_path(args.config)
    paths = getattr(args, "paths", None) or ["."]
    start = Path(paths[0])
    found = find_config_file(start if start.is_dir() else start.parent)
    if found is None and start != Path("."):
        found = find_config_file(Path.cwd())
    return load_config_from_path(found) if found else LicensaConfig()


def _format_text(report: RunReport) -> str:
    lines = []
    for r in report.results:
        if r.outcome is Outcome.ALREADY_COMPLIANT:
            continue
        detail = r.error or r.reason or ""
        if r.found_id:
            detail = f"{detail} ({r.found_id})" if detail else r.found_id
        lines.append(f"{r.outcome.value:<18} {r.path}" + (f": {detail}" if detail else ""))
    counts = report.counts
    summary = ", ".join(f"{name}={counts[name]}" for name in counts if counts[name])
    lines.append(f"{report.mode}: {summary or 'no files'}")
    if report.timed_out:
        lines.append("timeout reached; some files were not processed")
    return "\n".join(lines)


def _cmd_run(args: argparse.Namespace, mode: str) -> int:
    cfg = _load_config(args)
    _apply_overrides(cfg, args)
    if args.log_level:
        cfg.logging.level = args.log_level
    cfg.logging.apply()
    report = run_workspace(args.paths or ["."], cfg, mode=mode)
    if args.format == "json":
        print(json.dumps(report.as_dict(), indent=2))
    else:
        print(_format_text(report))
    return EXIT_OK if report.ok and not report.timed_out else EXIT_FAILED


def _cmd_init(args: argparse.Namespace) -> int:
    target = Path(args.directory) / CONFIG_FILENAMES[0]
    if target.exists() and not args.overwrite:
        print(f"Error: {target} already exists (use --overwrite to replace it).", file=sys.stderr)
        return EXIT_FAILED
    cfg = LicensaConfig()
    _apply_overrides(cfg, args)
    cfg.validate()
    data = cfg.to_dict(camel_case=True)
    # Only the sections a user edits by hand.
    data = {k: data[k] for k in ("type", "author", "year", "fields", "generator") if k in data}
    target.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    print(f"Wrote {target}")
    return EXIT_OK


def _cmd_licenses(args: argparse.Namespace) -> int:
    catalog = load_catalog(args.license_file) if args.license_file else builtin_catalog()
    for spec in catalog:
        print(f"{spec.id}\t{spec.name}")
    return EXIT_OK


def _dispatch(args: argparse.Namespace) -> int:
    """Dispatch a parsed CLI command to the appropriate handler.

    Returns:
        int: Process exit code: 0 on success, 1 when files failed or are
        non-compliant, 2 on configuration, catalog or template errors.
    """
    cmd = args.command
    if cmd == "apply":
        return _cmd_run(args, ApplyMode.WRITE)
    if cmd == "verify":
        return _cmd_run(args, ApplyMode.CHECK)

    LoggingConfig(level=args.log_level or "INFO").apply()
    if cmd == "init":
        return _cmd_init(args)
    if cmd == "licenses":
        return _cmd_licenses(args)

    print(f"Unknown command: {cmd}", file=sys.stderr)
    return EXIT_FAILED


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Entry point for the Licensa command-line interface.

    Args:
        argv (Sequence[str] | None): Optional list of argument strings to
            parse instead of ``sys.argv[1:]``. Primarily useful for tests.

    Returns:
        int: Process exit code.
    """
    parser = _build_parser()
    args = parser.parse_args(list(argv) if argv is not None else None)
    try:
        return _dispatch(args)
    except LicensaError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_CONFIG
    except Exception as exc:  # noqa: BLE001
        print(f"Error: {exc}", file=sys.stderr)
        return EXIT_FAILED


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
