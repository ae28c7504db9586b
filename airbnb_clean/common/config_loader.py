"""Configuration loading and validation."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from airbnb_clean.common.errors import ConfigError
from airbnb_clean.common.fs import read_yaml
from airbnb_clean.common.schema import validate_pipeline_config

CONFIG_FILENAME = "pipeline.yml"


@dataclass(frozen=True)
class PipelineConfig:
    fetch: dict
    source: dict
    store: dict
    output: dict

    def raw_csv_path(self, data_dir: Path) -> Path:
        return data_dir / "raw" / self.source["csv_path"]

    def store_path(self, data_dir: Path) -> Path:
        return data_dir / self.store["path"]

    def clean_csv_path(self, data_dir: Path) -> Path:
        return data_dir / "out" / self.output["clean_csv"]

    def quality_report_path(self, data_dir: Path) -> Path:
        return data_dir / "out" / "reports" / self.output["quality_report"]


def _deep_merge(base: Any, overlay: Any) -> Any:
    if isinstance(base, dict) and isinstance(overlay, dict):
        merged = dict(base)
        for key, value in overlay.items():
            if key in merged:
                merged[key] = _deep_merge(merged[key], value)
            else:
                merged[key] = value
        return merged
    return overlay


def _load_yaml_with_overlay(path: Path, overlay_path: Path | None) -> dict:
    if not path.exists():
        raise ConfigError(f"Missing config file: {path}")
    base = read_yaml(path)
    if overlay_path is None or not overlay_path.exists():
        return base
    overlay = read_yaml(overlay_path)
    return _deep_merge(base, overlay)


def load_config(
    config_dir: Path,
    *,
    allow_unknown: bool = False,
    overlay_config_dir: Path | None = None,
) -> PipelineConfig:
    overlay_path = overlay_config_dir / CONFIG_FILENAME if overlay_config_dir is not None else None
    cfg = validate_pipeline_config(
        _load_yaml_with_overlay(config_dir / CONFIG_FILENAME, overlay_path),
        allow_unknown=allow_unknown,
    )
    return PipelineConfig(
        fetch=cfg["fetch"],
        source=cfg["source"],
        store=cfg["store"],
        output=cfg["output"],
    )
