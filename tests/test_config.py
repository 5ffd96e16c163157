import json
import logging

import pytest

from licensa.core.catalog import builtin_catalog
from licensa.core.config import (
    ApplyMode,
    EngineConfig,
    GeneratorConfig,
    LicensaConfig,
    LoggingConfig,
    find_config_file,
    load_config_from_path,
)
from licensa.core.errors import ConfigurationError


def test_defaults_match_licensarc_defaults():
    cfg = LicensaConfig()
    assert cfg.license_type == "MIT"
    assert cfg.author is None
    assert cfg.year >= 2024
    assert cfg.generator == GeneratorConfig()
    assert cfg.generator.allowed_licenses == ["*"]
    assert cfg.generator.gitignore is True
    assert cfg.engine == EngineConfig()
    assert cfg.engine.max_prefix_bytes == 8192


def test_from_dict_accepts_camel_case_keys():
    cfg = LicensaConfig.from_dict(
        {
            "type": "Apache-2.0",
            "author": "Jane Doe",
            "year": "2023",
            "generator": {"spdxOnly": True, "allowedLicenses": ["Apache-*"], "ignorePatterns": ["dist/"]},
            "engine": {"maxWorkers": 4, "force": "yes"},
            "fields": {"projectName": "Widgets"},
        }
    )
    assert cfg.license_type == "Apache-2.0"
    assert cfg.year == 2023
    assert cfg.generator.spdx_only is True
    assert cfg.generator.ignore_patterns == ["dist/"]
    assert cfg.engine.max_workers == 4
    assert cfg.engine.force is True
    assert cfg.fields == {"projectName": "Widgets"}
    cfg.validate()


def test_unknown_keys_and_bad_values_are_configuration_errors():
    with pytest.raises(ConfigurationError):
        LicensaConfig.from_dict({"authr": "typo"})
    with pytest.raises(ConfigurationError):
        LicensaConfig.from_dict({"year": "last year"})
    with pytest.raises(ConfigurationError):
        LicensaConfig.from_dict({"engine": {"force": "maybe"}})
    with pytest.raises(ConfigurationError):
        LicensaConfig.from_dict(["not", "a", "mapping"])


@pytest.mark.parametrize(
    "mutate",
    [
        lambda c: setattr(c, "author", ""),
        lambda c: setattr(c, "year", 1969),
        lambda c: setattr(c, "license_type", " "),
        lambda c: setattr(c.generator, "allowed_licenses", ["GPL-*"]),
        lambda c: setattr(c.generator, "allowed_licenses", []),
        lambda c: setattr(c.engine, "max_workers", 0),
        lambda c: setattr(c.engine, "window", 0),
        lambda c: setattr(c.engine, "timeout", -1.0),
    ],
)
def test_validate_rejects_invalid_settings(mutate):
    cfg = LicensaConfig(author="Jane Doe", year=2024)
    cfg.validate()
    mutate(cfg)
    with pytest.raises(ConfigurationError):
        cfg.validate()


def test_allowed_licenses_globs_are_case_insensitive():
    gen = GeneratorConfig(allowed_licenses=["gpl-*", "MIT"])
    assert gen.allows("GPL-3.0-only")
    assert gen.allows("mit")
    assert not gen.allows("Apache-2.0")


def test_field_map_builtins_cannot_be_overridden():
    cfg = LicensaConfig(author=" Jane Doe ", year=2024, fields={"author": "Mallory", "project": "Widgets"})
    spec = builtin_catalog().lookup("mit")
    fields = cfg.field_map(spec)
    assert dict(fields) == {
        "author": "Jane Doe",
        "year": "2024",
        "license": "MIT",
        "license_name": "MIT License",
        "project": "Widgets",
    }
    with pytest.raises(TypeError):
        fields["author"] = "x"  # type: ignore[index]


def test_licensarc_round_trip(tmp_path):
    cfg = LicensaConfig(license_type="ISC", author="Jane Doe", year=2022)
    cfg.generator.ignore_patterns = ["vendor/"]
    path = tmp_path / ".licensarc"
    cfg.to_json(path, camel_case=True)

    raw = json.loads(path.read_text(encoding="utf-8"))
    assert raw["type"] == "ISC"
    assert raw["generator"]["ignorePatterns"] == ["vendor/"]
    assert "spdxOnly" in raw["generator"]

    assert find_config_file(tmp_path) == path
    assert load_config_from_path(path) == cfg
    assert LicensaConfig.from_dict(cfg.to_dict()) == cfg


def test_load_toml_config(tmp_path):
    path = tmp_path / "licensa.toml"
    path.write_text(
        'type = "BSD-3-Clause"\n'
        'author = "Jane Doe"\n'
        "year = 2021\n"
        "\n"
        "[generator]\n"
        'ignore_patterns = ["build/"]\n'
        "\n"
        "[engine]\n"
        "max_workers = 2\n"
        "timeout = 1.5\n",
        encoding="utf-8",
    )
    assert find_config_file(tmp_path) == path
    cfg = load_config_from_path(path)
    assert cfg.license_type == "BSD-3-Clause"
    assert cfg.generator.ignore_patterns == ["build/"]
    assert cfg.engine.max_workers == 2
    assert cfg.engine.timeout == 1.5


def test_load_config_errors(tmp_path):
    with pytest.raises(ConfigurationError):
        load_config_from_path(tmp_path / "config.yaml")
    with pytest.raises(ConfigurationError):
        load_config_from_path(tmp_path / "missing.json")
    bad = tmp_path / ".licensarc"
    bad.write_text("{oops", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config_from_path(bad)
    bad_toml = tmp_path / "licensa.toml"
    bad_toml.write_text("type = ", encoding="utf-8")
    with pytest.raises(ConfigurationError):
        load_config_from_path(bad_toml)
    assert find_config_file(tmp_path / "nowhere") is None


def test_apply_mode_normalize():
    assert ApplyMode.normalize(" WRITE ") == ApplyMode.WRITE
    assert ApplyMode.normalize(None) == ApplyMode.CHECK
    assert ApplyMode.is_write("write")
    with pytest.raises(ConfigurationError):
        ApplyMode.normalize("dry-run")


def test_logging_config_apply():
    name = "licensa.test.logging_config"
    LoggingConfig(level="DEBUG", propagate=True, logger_name=name).apply()
    logger = logging.getLogger(name)
    try:
        assert logger.level == logging.DEBUG
        assert logger.propagate is True
        assert any(isinstance(h, logging.StreamHandler) for h in logger.handlers)
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
