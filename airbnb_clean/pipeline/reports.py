"""Run report aggregation."""

from __future__ import annotations

from pathlib import Path

from airbnb_clean.common.config_loader import PipelineConfig
from airbnb_clean.common.fs import read_json, write_json


def write_run_summary(config: PipelineConfig, data_dir: Path, run_id: str, run_date: str) -> Path:
    quality_path = config.quality_report_path(data_dir)
    stats_path = data_dir / "intermediate" / "clean_stats.json"

    warnings: list[str] = []
    errors: list[str] = []

    quality = read_json(quality_path) if quality_path.exists() else None
    stats = read_json(stats_path) if stats_path.exists() else None

    if quality is None:
        warnings.append("QUALITY_REPORT_MISSING")
    else:
        warnings.extend(quality.get("warnings", []))
    if stats is None:
        errors.append("CLEAN_STATS_MISSING")
    elif int(stats.get("rejected", 0)) > 0:
        warnings.append("ROWS_EXCLUDED")

    status = "success"
    if errors:
        status = "error"
    elif warnings:
        status = "partial"

    payload = {
        "run_id": run_id,
        "run_date": run_date,
        "status": status,
        "quality_summary": (quality or {}).get("summary", {}),
        "totals": {
            "rows_in": int((stats or {}).get("rows_in", 0)),
            "admitted": int((stats or {}).get("admitted", 0)),
            "rejected": int((stats or {}).get("rejected", 0)),
        },
        "exclusion_reasons": (stats or {}).get("exclusion_reasons", {}),
        "flag_counts": (stats or {}).get("flag_counts", {}),
        "warnings": warnings,
        "errors": errors,
    }
    summary_path = data_dir / "out" / "reports" / "run_summary.json"
    write_json(summary_path, payload)
    return summary_path
