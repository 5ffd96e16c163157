# config.py
# SPDX-License-Identifier: MIT
"""Configuration models and helpers for Licensa runs.

This module defines declarative dataclasses for license selection, workspace
scanning, the apply engine and logging, along with helpers for serializing
and loading configurations from ``.licensarc`` (JSON) and TOML files.
"""
from __future__ import annotations

import datetime as _dt
import fnmatch
import json
import re
import types
try:  # pragma: no cover - optional dependency
    import tomllib  # Python 3.11+
except ModuleNotFoundError:  # pragma: no cover
    try:
        import tomli as tomllib  # type: ignore[assignment]
    except Exception:  # pragma: no cover
        tomllib = None  # type: ignore[assignment]
from collections.abc import Sequence as ABCSequence
from dataclasses import dataclass, field, fields, is_dataclass
from pathlib import Path
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional, Tuple, Type, TypeVar, Union, get_args, get_origin, get_type_hints

from .errors import ConfigurationError
from .log import PACKAGE_LOGGER_NAME, configure_logging

if TYPE_CHECKING:  # pragma: no cover
    from .catalog import LicenseSpec

CONFIG_FILENAMES: Tuple[str, ...] = (".licensarc", ".licensa.json", "licensa.toml")
DEFAULT_LICENSE = "MIT"
ALLOW_ALL = "*"
MIN_YEAR = 1970
MAX_YEAR = 9999
BUILTIN_FIELDS = frozenset({"author", "year", "license", "license_name"})


def _current_year() -> int:
    return _dt.date.today().year


# ---------------------------------------------------------------------------
# Apply mode helpers
# ---------------------------------------------------------------------------


class ApplyMode:
    """Supported apply modes.

    Modes:
    * ``CHECK``: Classify every file and report; never write.
    * ``WRITE``: Insert missing headers and update stale ones.
    """

    CHECK = "check"
    WRITE = "write"
    ALL = {CHECK, WRITE}

    @classmethod
    def normalize(cls, value: Optional[str]) -> str:
        mode = (value or cls.CHECK).strip().lower()
        if mode not in cls.ALL:
            raise ConfigurationError(f"Invalid apply mode: {value!r}. Expected one of {sorted(cls.ALL)}")
        return mode

    @classmethod
    def is_write(cls, mode: str) -> bool:
        return mode == cls.WRITE


# ---------------------------------------------------------------------------
# Section configs
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class GeneratorConfig:
    """Header generation and workspace selection options.

    Attributes:
        spdx_only (bool): Emit only the ``SPDX-License-Identifier`` line
            instead of the full header template.
        license_file (str | None): SPDX license-list JSON to load the
            catalog from instead of the bundled templates.
        allowed_licenses (list[str]): License ids (glob patterns allowed,
            case-insensitive) that may be applied. ``"*"`` allows any.
        ignore_patterns (list[str]): Gitignore-style patterns excluded
            from the scan, evaluated after all ignore files.
        gitignore (bool): Honor ``.gitignore`` files and
            ``.git/info/exclude``.
    """
    spdx_only: bool = False
    license_file: Optional[str] = None
    allowed_licenses: List[str] = field(default_factory=lambda: [ALLOW_ALL])
    ignore_patterns: List[str] = field(default_factory=list)
    gitignore: bool = True

    def allows(self, license_id: str) -> bool:
        wanted = license_id.casefold()
        return any(
            fnmatch.fnmatchcase(wanted, pattern.strip().casefold())
            for pattern in self.allowed_licenses
        )


@dataclass(slots=True)
class EngineConfig:
    """Apply engine settings.

    Attributes:
        max_workers (int): Worker threads; ``1`` runs serially.
        window (int | None): Maximum in-flight files; defaults to
            ``4 * max_workers``.
        force (bool): Override foreign-header protection.
        skip_hidden (bool): Skip dotfiles and dot-directories.
        max_prefix_bytes (int): Leading bytes read per file; raised
            automatically to fit the expected header.
        timeout (float | None): Seconds after which no new files are
            scheduled. In-flight files still finish.
        lexer_fallback (bool): Classify unknown extensions through
            Pygments lexers.
    """
    max_workers: int = 1
    window: Optional[int] = None
    force: bool = False
    skip_hidden: bool = True
    max_prefix_bytes: int = 8192
    timeout: Optional[float] = None
    lexer_fallback: bool = False


@dataclass(slots=True)
class LoggingConfig:
    """Controls the package logger; set propagate=True/logger_name to
    integrate with host apps.
    """
    level: Union[int, str] = "INFO"
    propagate: bool = False
    fmt: Optional[str] = "%(levelname)s %(name)s: %(message)s"
    logger_name: str = PACKAGE_LOGGER_NAME

    def apply(self) -> None:
        """Apply this logging configuration to the package logger.

        Raises:
            ConfigurationError: If ``level`` is not a logging level name.
        """
        try:
            configure_logging(
                level=self.level,
                propagate=self.propagate,
                fmt=self.fmt,
                logger_name=self.logger_name or PACKAGE_LOGGER_NAME,
            )
        except ValueError as exc:
            raise ConfigurationError(f"logging.level: {exc}") from exc


# ---------------------------------------------------------------------------
# Master config
# ---------------------------------------------------------------------------

T = TypeVar("T")


@dataclass(slots=True)
class LicensaConfig:
    """Declarative spec for a Licensa run.

    ``license_type`` is written ``type`` in ``.licensarc`` files. Extra
    template placeholders go in ``fields``; they may add names but never
    override ``author``, ``year``, ``license`` or ``license_name``.
    """
    license_type: str = DEFAULT_LICENSE
    author: Optional[str] = None
    year: int = field(default_factory=_current_year)
    fields: Dict[str, str] = field(default_factory=dict)
    generator: GeneratorConfig = field(default_factory=GeneratorConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)

    def validate(self) -> None:
        """Validate the configuration for internal consistency.

        Raises:
            ConfigurationError: On an empty author, an out-of-range year, a
                license id outside ``generator.allowed_licenses``, or
                invalid engine settings.
        """
        self.license_type = (self.license_type or "").strip()
        if not self.license_type:
            raise ConfigurationError("license type must not be empty.")
        if not self.author or not str(self.author).strip():
            raise ConfigurationError("author is required; set 'author' in the config or pass --author.")
        if not MIN_YEAR <= int(self.year) <= MAX_YEAR:
            raise ConfigurationError(f"year must be between {MIN_YEAR} and {MAX_YEAR}; got {self.year!r}.")
        gen = self.generator
        if not gen.allowed_licenses:
            raise ConfigurationError("generator.allowed_licenses must not be empty; use ['*'] to allow any license.")
        if not gen.allows(self.license_type):
            raise ConfigurationError(
                f"license {self.license_type!r} is not in allowed licenses {gen.allowed_licenses}."
            )
        eng = self.engine
        if eng.max_workers < 1:
            raise ConfigurationError(f"engine.max_workers must be >= 1; got {eng.max_workers}.")
        if eng.window is not None and eng.window < 1:
            raise ConfigurationError(f"engine.window must be >= 1 when set; got {eng.window}.")
        if eng.max_prefix_bytes < 1:
            raise ConfigurationError(f"engine.max_prefix_bytes must be >= 1; got {eng.max_prefix_bytes}.")
        if eng.timeout is not None and eng.timeout < 0:
            raise ConfigurationError(f"engine.timeout must be >= 0 when set; got {eng.timeout}.")

    def field_map(self, spec: LicenseSpec | None = None) -> Mapping[str, str]:
        """Return the read-only placeholder values for rendering.

        Args:
            spec (LicenseSpec | None): Resolved catalog entry; supplies the
                canonical id and display name when given.
        """
        values: Dict[str, str] = {str(k): str(v) for k, v in self.fields.items() if k not in BUILTIN_FIELDS}
        values.update(
            author=str(self.author or "").strip(),
            year=str(self.year),
            license=spec.id if spec is not None else self.license_type,
            license_name=spec.name if spec is not None else self.license_type,
        )
        return MappingProxyType(values)

    # -------------------------
    # Serialization helpers
    # -------------------------
    def to_dict(self, *, camel_case: bool = False) -> Dict[str, Any]:
        """Return a JSON-serializable representation of this configuration.

        With ``camel_case`` the keys follow the ``.licensarc`` convention
        (``type``, ``allowedLicenses``, ...).
        """
        data = _dataclass_to_dict(self)
        return _camelize(data) if camel_case else data

    def to_json(self, path: Path | str, *, indent: int = 2, camel_case: bool = False) -> str:
        """Serialize the configuration to JSON and write it to disk.

        Returns:
            str: String path to the written file.
        """
        target = Path(path)
        payload = json.dumps(self.to_dict(camel_case=camel_case), indent=indent, sort_keys=True)
        target.write_text(payload + "\n", encoding="utf-8")
        return str(target)

    @classmethod
    def from_dict(cls: Type[T], data: Mapping[str, Any]) -> T:
        """Instantiate a LicensaConfig from a mapping with snake_case or camelCase keys.

        Raises:
            ConfigurationError: If a value cannot be coerced to its field type.
        """
        if not isinstance(data, Mapping):
            raise ConfigurationError(f"config must be a mapping; got {type(data).__name__}.")
        try:
            return _dataclass_from_dict(cls, _normalize_keys(data))
        except (TypeError, ValueError) as exc:
            if isinstance(exc, ConfigurationError):
                raise
            raise ConfigurationError(f"invalid configuration: {exc}") from exc

    @classmethod
    def from_json(cls: Type[T], path: Path | str) -> T:
        """Load a configuration from a JSON file (``.licensarc`` included)."""
        p = Path(path)
        try:
            payload = json.loads(p.read_text(encoding="utf-8"))
        except OSError as exc:
            raise ConfigurationError(f"cannot read config file {p}: {exc}") from exc
        except ValueError as exc:
            raise ConfigurationError(f"invalid JSON in config file {p}: {exc}") from exc
        return cls.from_dict(payload)

    @classmethod
    def from_toml(cls: Type[T], path: Path | str) -> T:
        """Load a configuration from a TOML file.

        The TOML layout mirrors this dataclass: top-level keys plus
        ``[generator]``, ``[engine]``, ``[logging]`` and ``[fields]`` tables.
        """
        if tomllib is None:
            raise ConfigurationError(
                "TOML support requires Python 3.11+ (tomllib) or installing the 'tomli' package."
            )
        p = Path(path)
        try:
            data = tomllib.loads(p.read_bytes().decode("utf-8"))
        except OSError as exc:
            raise ConfigurationError(f"cannot read config file {p}: {exc}") from exc
        except (UnicodeDecodeError, tomllib.TOMLDecodeError) as exc:
            raise ConfigurationError(f"invalid TOML in config file {p}: {exc}") from exc
        return cls.from_dict(data)


def find_config_file(start_dir: str | Path) -> Optional[Path]:
    """Return the first of :data:`CONFIG_FILENAMES` present in ``start_dir``."""
    base = Path(start_dir)
    for name in CONFIG_FILENAMES:
        candidate = base / name
        if candidate.is_file():
            return candidate
    return None


def load_config_from_path(path: str | Path) -> LicensaConfig:
    """Load a LicensaConfig from a ``.licensarc``, JSON or TOML file.

    Raises:
        ConfigurationError: If the file type is unsupported or the
            contents are invalid.
    """
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == ".toml":
        return LicensaConfig.from_toml(p)
    if suffix == ".json" or p.name == ".licensarc":
        return LicensaConfig.from_json(p)
    raise ConfigurationError(f"Unsupported config file {p.name!r}; expected .licensarc, .json or .toml.")


# ---------------------------------------------------------------------------
# Key normalization
# ---------------------------------------------------------------------------

_KEY_ALIASES = {"type": "license_type"}
_CAMEL_RE = re.compile(r"(?<=[a-z0-9])([A-Z])")
# Free-form user mappings whose keys are placeholder names, not field names.
_VERBATIM_KEYS = frozenset({"fields"})


def _snake(key: str) -> str:
    key = _CAMEL_RE.sub(r"_\1", key).lower()
    return _KEY_ALIASES.get(key, key)


def _camel(key: str) -> str:
    if key == "license_type":
        return "type"
    head, *rest = key.split("_")
    return head + "".join(part.title() for part in rest)


def _normalize_keys(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in data.items():
        name = _snake(str(key))
        if isinstance(value, Mapping) and name not in _VERBATIM_KEYS:
            value = _normalize_keys(value)
        out[name] = value
    return out


def _camelize(data: Mapping[str, Any]) -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping) and key not in _VERBATIM_KEYS:
            value = _camelize(value)
        out[_camel(key)] = value
    return out


# ---------------------------------------------------------------------------
# Dataclass (de)serialization
# ---------------------------------------------------------------------------

def _dataclass_to_dict(obj: Any) -> Dict[str, Any]:
    """Serialize dataclasses to JSON-friendly dicts, skipping None fields."""
    result: Dict[str, Any] = {}
    for f in fields(obj):
        value = getattr(obj, f.name)
        if value is None:
            continue
        serialized = _serialize_value(value)
        if serialized is not None:
            result[f.name] = serialized
    return result


def _serialize_value(value: Any) -> Any:
    """Best-effort JSON-friendly coercion; drops values that cannot be serialized."""
    if value is None:
        return None
    if isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, Path):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_serialize_value(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _serialize_value(v) for k, v in value.items() if v is not None}
    if is_dataclass(value):
        return _dataclass_to_dict(value)
    return None


def _dataclass_from_dict(cls: Type[T], data: Mapping[str, Any] | None) -> T:
    """Instantiate a dataclass of type `cls` from a mapping.

    Unknown keys raise ConfigurationError so typos do not pass silently.
    """
    if data is None:
        return cls()  # type: ignore[call-arg]
    if not isinstance(data, Mapping):
        raise ConfigurationError(f"{cls.__name__} expects a mapping; got {type(data).__name__}.")
    type_hints = get_type_hints(cls)
    known = {f.name for f in fields(cls)}
    unknown = sorted(k for k in data if k not in known)
    if unknown:
        raise ConfigurationError(
            f"Unsupported options for {cls.__name__}: {', '.join(unknown)}. "
            f"Allowed keys: {', '.join(sorted(known))}"
        )
    kwargs: Dict[str, Any] = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        field_type = type_hints.get(f.name, f.type)
        kwargs[f.name] = _coerce_value(field_type, data[f.name])
    return cls(**kwargs)  # type: ignore[arg-type]


def _coerce_value(expected_type: Any, value: Any) -> Any:
    """Coerce `value` into the shape implied by `expected_type`.

    This handles nested dataclasses, container types and unions,
    recursing into sequences and mappings when necessary.
    """
    base_type, _ = _strip_optional(expected_type)
    if value is None:
        return None
    if is_dataclass_type(base_type):
        return _dataclass_from_dict(base_type, value)
    origin = get_origin(base_type)
    if origin in (list, tuple, ABCSequence):
        if isinstance(value, str):
            value = [value]
        args = get_args(base_type)
        inner = args[0] if args else Any
        items = [_coerce_value(inner, v) for v in value]
        return tuple(items) if origin is tuple else list(items)
    if origin is dict:
        key_type, val_type = get_args(base_type) if get_args(base_type) else (Any, Any)
        return {_coerce_value(key_type, k): _coerce_value(val_type, v) for k, v in value.items()}
    if base_type is Path:
        return Path(value)
    if base_type is bool:
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in {"1", "true", "yes", "on"}:
                return True
            if lowered in {"0", "false", "no", "off"}:
                return False
            raise ValueError(f"expected a boolean, got {value!r}")
        return bool(value)
    if base_type in {str, int, float}:
        return base_type(value)
    return value


def _strip_optional(typ: Any) -> Tuple[Any, bool]:
    """Strip Optional from a type annotation.

    Returns:
        tuple[Any, bool]: A pair ``(base_type, is_optional)`` where
        ``is_optional`` is True if ``None`` was present in the union.
    """
    origin = get_origin(typ)
    if origin is Union or origin is types.UnionType:
        args = [arg for arg in get_args(typ) if arg is not type(None)]
        if len(args) == 1:
            base, _ = _strip_optional(args[0])
            return base, True
    return typ, False


def is_dataclass_type(typ: Any) -> bool:
    """Return True if `typ` is a dataclass type (not an instance)."""
    try:
        return isinstance(typ, type) and is_dataclass(typ)
    except Exception:
        return False


__all__ = [
    "ApplyMode",
    "CONFIG_FILENAMES",
    "EngineConfig",
    "GeneratorConfig",
    "LicensaConfig",
    "LoggingConfig",
    "find_config_file",
    "load_config_from_path",
]
