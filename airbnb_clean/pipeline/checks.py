"""Data-quality profile of the raw listings table."""

from __future__ import annotations

import logging
import time
from collections import Counter
from pathlib import Path
from typing import Iterable

from airbnb_clean.common.config_loader import PipelineConfig
from airbnb_clean.common.constants import SAMPLE_LIMIT, TOP_PROPERTY_TYPES
from airbnb_clean.common.fs import write_json
from airbnb_clean.common.logging import get_logger, log_event
from airbnb_clean.common.models import RawRecord
from airbnb_clean.common.time_utils import elapsed_ms
from airbnb_clean.pipeline.rules import (
    LAT_RANGE,
    LON_RANGE,
    is_blank,
    outside_range,
    parse_price,
    validate_record,
)
from airbnb_clean.pipeline.store import TableStore

NULL_LABEL = "(null)"


def _ranked(counter: Counter, limit: int | None = None) -> list[dict]:
    ordered = sorted(counter.items(), key=lambda item: (-item[1], str(item[0])))
    if limit is not None:
        ordered = ordered[:limit]
    return [{"value": value, "count": count} for value, count in ordered]


def _bad_format(raw_value: object, parsed: object) -> bool:
    return not is_blank(raw_value) and parsed is None


def profile_rows(rows: Iterable[RawRecord]) -> dict:
    counts: Counter[str] = Counter()
    ids: Counter = Counter()
    room_types: Counter = Counter()
    property_types: Counter = Counter()

    for raw in rows:
        outcome = validate_record(raw)
        record, flags = outcome.record, outcome.flags
        counts["total_rows"] += 1

        if record.id is None:
            counts["missing_id"] += 1
        else:
            ids[str(record.id)] += 1
        counts["null_host_id"] += record.host_id is None
        counts["null_neighbourhood"] += record.neighbourhood is None
        counts["null_room_type"] += record.room_type is None
        counts["null_property_type"] += record.property_type is None

        no_geo = record.latitude is None or record.longitude is None
        counts["null_geo"] += no_geo
        counts["neighbourhood_but_no_geo"] += record.neighbourhood is not None and no_geo
        counts["out_of_range_geo"] += outside_range(record.latitude, *LAT_RANGE) or outside_range(
            record.longitude, *LON_RANGE
        )

        counts["missing_price"] += is_blank(raw.get("price"))
        counts["invalid_price_format"] += _bad_format(raw.get("price"), parse_price(raw.get("price")))
        counts["extreme_price_count"] += flags.extreme_price

        counts["min_gt_max_nights"] += flags.invalid_nights
        counts["invalid_availability"] += flags.invalid_availability

        counts["invalid_host_response_rate_format"] += _bad_format(
            raw.get("host_response_rate"), record.host_response_rate_pct
        )
        counts["invalid_host_acceptance_rate_format"] += _bad_format(
            raw.get("host_acceptance_rate"), record.host_acceptance_rate_pct
        )
        counts["response_rate_gt_100"] += flags.invalid_host_response_rate
        counts["acceptance_rate_gt_100"] += flags.invalid_host_acceptance_rate
        counts["invalid_review_scores"] += flags.invalid_review_scores

        room_types[record.room_type or NULL_LABEL] += 1
        property_types[record.property_type or NULL_LABEL] += 1

    duplicates = Counter({key: count for key, count in ids.items() if count > 1})
    checks = {
        key: int(counts.get(key, 0))
        for key in (
            "total_rows",
            "missing_id",
            "null_host_id",
            "null_neighbourhood",
            "null_room_type",
            "null_property_type",
            "null_geo",
            "out_of_range_geo",
            "neighbourhood_but_no_geo",
            "missing_price",
            "invalid_price_format",
            "extreme_price_count",
            "min_gt_max_nights",
            "invalid_availability",
            "invalid_host_response_rate_format",
            "invalid_host_acceptance_rate_format",
            "response_rate_gt_100",
            "acceptance_rate_gt_100",
            "invalid_review_scores",
        )
    }
    checks["duplicate_id_count"] = sum(count - 1 for count in duplicates.values())

    return {
        "summary": {
            "total_rows": checks["total_rows"],
            "missing_id": checks["missing_id"],
            "missing_price": checks["missing_price"],
            "missing_geo": checks["null_geo"],
        },
        "checks": checks,
        "duplicate_ids": _ranked(duplicates, SAMPLE_LIMIT),
        "room_types": _ranked(room_types),
        "top_property_types": _ranked(property_types, TOP_PROPERTY_TYPES),
    }


def run_checks(
    config: PipelineConfig,
    data_dir: Path,
    run_id: str,
    run_date: str,
    logger: logging.Logger | None = None,
) -> Path:
    logger = get_logger(logger)
    started = time.monotonic()
    raw_table = config.store["raw_table"]

    with TableStore(config.store_path(data_dir)) as store:
        profile = profile_rows(store.iter_rows(raw_table))

    warnings: list[str] = []
    checks = profile["checks"]
    if checks["duplicate_id_count"] > 0:
        warnings.append("DUPLICATE_IDS_PRESENT")
    if checks["total_rows"] == 0:
        warnings.append("RAW_TABLE_EMPTY")

    report_path = config.quality_report_path(data_dir)
    write_json(
        report_path,
        {"run_id": run_id, "run_date": run_date, "raw_table": raw_table, "warnings": warnings, **profile},
    )
    log_event(
        logger,
        f"profiled {checks['total_rows']} raw rows",
        run_id=run_id,
        stage="check",
        event="CHECK_DONE",
        status="warn" if warnings else "ok",
        rows_in=checks["total_rows"],
        duration_ms=elapsed_ms(started),
    )
    return report_path
