"""Strict schema for the pipeline YAML config."""

from __future__ import annotations

from airbnb_clean.common.errors import ConfigError

SECTION_KEYS: dict[str, set[str]] = {
    "fetch": {"enabled", "url", "timeout_seconds"},
    "source": {"csv_path", "encoding"},
    "store": {"path", "raw_table", "clean_table", "rejected_table", "persist_rejects"},
    "output": {"clean_csv", "quality_report"},
}

_TABLE_KEYS = ("raw_table", "clean_table", "rejected_table")


def _assert_required_keys(obj: dict, required: set[str], ctx: str) -> None:
    missing = required - set(obj)
    if missing:
        missing_str = ", ".join(sorted(missing))
        raise ConfigError(f"Missing keys in {ctx}: {missing_str}")


def _assert_no_unknown_keys(obj: dict, known: set[str], ctx: str, allow_unknown: bool) -> None:
    if allow_unknown:
        return
    unknown = set(obj) - known
    if unknown:
        unknown_str = ", ".join(sorted(unknown))
        raise ConfigError(f"Unknown keys in {ctx}: {unknown_str}")


def validate_pipeline_config(cfg: dict, *, allow_unknown: bool = False) -> dict:
    if not isinstance(cfg, dict):
        raise ConfigError("pipeline config must be a mapping")

    _assert_required_keys(cfg, set(SECTION_KEYS), "pipeline config")
    _assert_no_unknown_keys(cfg, set(SECTION_KEYS), "pipeline config", allow_unknown)

    for section, keys in SECTION_KEYS.items():
        if not isinstance(cfg[section], dict):
            raise ConfigError(f"{section} must be a mapping")
        _assert_required_keys(cfg[section], keys, section)
        _assert_no_unknown_keys(cfg[section], keys, section, allow_unknown)

    if cfg["fetch"]["enabled"] and not cfg["fetch"]["url"]:
        raise ConfigError("fetch.url is required when fetch.enabled is true")

    tables = [cfg["store"][key] for key in _TABLE_KEYS]
    for name in tables:
        if not isinstance(name, str) or not name.isidentifier():
            raise ConfigError(f"Invalid table name: {name!r}")
    if len(set(tables)) != len(tables):
        raise ConfigError("store table names must be distinct")

    return cfg
