"""Validate raw listings and publish the clean table."""

from __future__ import annotations

import logging
import time
from collections import Counter
from pathlib import Path
from typing import Iterable, Iterator

from airbnb_clean.common.config_loader import PipelineConfig
from airbnb_clean.common.constants import SAMPLE_LIMIT
from airbnb_clean.common.errors import ContractError
from airbnb_clean.common.fs import write_json
from airbnb_clean.common.logging import get_logger, log_event
from airbnb_clean.common.models import FLAG_NAMES, NORMALIZED_FIELDS, RawRecord, ValidationOutcome
from airbnb_clean.common.time_utils import elapsed_ms
from airbnb_clean.pipeline.rules import EXCLUSION_PRIORITY, validate_record
from airbnb_clean.pipeline.store import TableBuild, TableStore

TEXT_COLUMNS = {
    # Identifiers stay opaque text.
    "id",
    "host_id",
    "listing_url",
    "name",
    "property_type",
    "room_type",
    "neighbourhood_group",
    "neighbourhood",
    "host_is_superhost",
    "instant_bookable",
    "has_availability",
    "first_review",
    "last_review",
    "last_scraped",
    "calendar_last_scraped",
}
INTEGER_COLUMNS = {"host_response_rate_pct", "host_acceptance_rate_pct"}


def _column_type(name: str) -> str:
    if name in TEXT_COLUMNS:
        return "TEXT"
    if name in INTEGER_COLUMNS:
        return "INTEGER"
    return "NUMERIC"


def flag_column(name: str) -> str:
    return f"flag_{name}"


CLEAN_COLUMNS: list[tuple[str, str]] = [(name, _column_type(name)) for name in NORMALIZED_FIELDS] + [
    (flag_column(name), "INTEGER") for name in FLAG_NAMES
]
REJECTED_COLUMNS: list[tuple[str, str]] = [
    ("id", "TEXT"),
    ("host_id", "TEXT"),
    ("exclusion_reason", "TEXT"),
] + [(flag_column(name), "INTEGER") for name in FLAG_NAMES]


def clean_indexes(table: str) -> dict[str, str]:
    return {f"idx_{table}_id": "id", f"idx_{table}_neighbourhood": "neighbourhood"}


def _flag_columns(outcome: ValidationOutcome) -> dict[str, int]:
    return {flag_column(name): int(value) for name, value in outcome.flags.to_dict().items()}


def clean_row(outcome: ValidationOutcome) -> dict:
    row = outcome.record.to_dict()
    # sqlite3 has no Decimal adapter.
    if row["price_usd"] is not None:
        row["price_usd"] = float(row["price_usd"])
    row.update(_flag_columns(outcome))
    return row


def rejected_row(outcome: ValidationOutcome) -> dict:
    row = {
        "id": outcome.record.id,
        "host_id": outcome.record.host_id,
        "exclusion_reason": outcome.exclusion_reason,
    }
    row.update(_flag_columns(outcome))
    return row


class CleanRun:
    """Single pass over raw rows; yields admitted rows and tallies the rest."""

    def __init__(self, keep_rejects: bool = False) -> None:
        self.keep_rejects = keep_rejects
        self.rows_in = 0
        self.admitted = 0
        self.exclusion_reasons: Counter[str] = Counter()
        self.flag_counts: Counter[str] = Counter()
        self.rejected_rows: list[dict] = []
        self.rejected_samples: list[dict] = []

    @property
    def rejected(self) -> int:
        return sum(self.exclusion_reasons.values())

    def admitted_rows(self, raw_rows: Iterable[RawRecord]) -> Iterator[dict]:
        for raw in raw_rows:
            self.rows_in += 1
            outcome = validate_record(raw)
            self.flag_counts.update(outcome.flags.raised())
            if outcome.admitted:
                self.admitted += 1
                yield clean_row(outcome)
                continue

            self.exclusion_reasons[outcome.exclusion_reason] += 1
            if self.keep_rejects:
                self.rejected_rows.append(rejected_row(outcome))
            if len(self.rejected_samples) < SAMPLE_LIMIT:
                self.rejected_samples.append(
                    {
                        "id": outcome.record.id,
                        "host_id": outcome.record.host_id,
                        "exclusion_reason": outcome.exclusion_reason,
                        "flags": outcome.flags.raised(),
                    }
                )

    def stats(self) -> dict:
        return {
            "rows_in": self.rows_in,
            "admitted": self.admitted,
            "rejected": self.rejected,
            "exclusion_reasons": {name: self.exclusion_reasons.get(name, 0) for name in EXCLUSION_PRIORITY},
            "flag_counts": {name: self.flag_counts.get(name, 0) for name in FLAG_NAMES},
            "rejected_samples": self.rejected_samples,
        }


def run_clean(
    config: PipelineConfig,
    data_dir: Path,
    run_id: str,
    logger: logging.Logger | None = None,
) -> dict:
    logger = get_logger(logger)
    started = time.monotonic()
    raw_table = config.store["raw_table"]
    clean_table = config.store["clean_table"]
    persist_rejects = bool(config.store.get("persist_rejects"))

    run = CleanRun(keep_rejects=persist_rejects)

    def check_dispositions(counts: list[int]) -> None:
        written = counts[0]
        if written != run.admitted or run.admitted + run.rejected != run.rows_in:
            raise ContractError(
                f"Row disposition mismatch: in={run.rows_in} admitted={run.admitted} "
                f"rejected={run.rejected} written={written}"
            )

    with TableStore(config.store_path(data_dir)) as store:
        builds = [
            TableBuild(
                clean_table,
                CLEAN_COLUMNS,
                run.admitted_rows(store.iter_rows(raw_table)),
                clean_indexes(clean_table),
            )
        ]
        # Filled after the clean table, once the raw pass has collected them.
        if persist_rejects:
            builds.append(TableBuild(config.store["rejected_table"], REJECTED_COLUMNS, run.rejected_rows))
        store.replace_tables(builds, before_swap=check_dispositions)

    stats = run.stats()
    payload = {"run_id": run_id, "raw_table": raw_table, "clean_table": clean_table, **stats}
    write_json(data_dir / "intermediate" / "clean_stats.json", payload)

    log_event(
        logger,
        f"admitted {run.admitted} of {run.rows_in} listings into {clean_table}",
        run_id=run_id,
        stage="clean",
        event="CLEAN_SUMMARY",
        rows_in=run.rows_in,
        rows_out=run.admitted,
        rows_rejected=run.rejected,
        duration_ms=elapsed_ms(started),
    )
    return payload
