"""Load the listings CSV into the raw table with every column as TEXT."""

from __future__ import annotations

import csv
import logging
import time
from collections import Counter
from pathlib import Path
from typing import Iterator

from airbnb_clean.common.config_loader import PipelineConfig
from airbnb_clean.common.errors import StageError
from airbnb_clean.common.fs import open_text
from airbnb_clean.common.logging import get_logger, log_event
from airbnb_clean.common.time_utils import elapsed_ms
from airbnb_clean.pipeline.store import TableStore

# Huge listing descriptions overflow the csv module's default field limit.
csv.field_size_limit(1 << 24)


def _read_header(path: Path, encoding: str) -> list[str]:
    with open_text(path, encoding) as f:
        header = next(csv.reader(f), None)
    if not header:
        raise StageError(f"CSV input has no header: {path}")
    columns = [name.strip() for name in header]
    dupes = sorted({name for name in columns if columns.count(name) > 1})
    if dupes:
        raise StageError(f"Duplicate CSV columns in {path}: {', '.join(dupes)}")
    return columns


def _iter_csv_rows(path: Path, encoding: str, columns: list[str], ragged: Counter[str]) -> Iterator[dict]:
    width = len(columns)
    with open_text(path, encoding) as f:
        reader = csv.reader(f)
        next(reader, None)
        for values in reader:
            if not values:
                continue
            # Short rows pad with NULL; extra trailing cells are dropped and counted.
            if len(values) > width:
                ragged["truncated"] += 1
                values = values[:width]
            elif len(values) < width:
                ragged["padded"] += 1
                values = values + [None] * (width - len(values))
            yield dict(zip(columns, values))


def run_load(config: PipelineConfig, data_dir: Path, logger: logging.Logger | None = None) -> dict:
    logger = get_logger(logger)
    started = time.monotonic()
    csv_path = config.raw_csv_path(data_dir)
    encoding = config.source.get("encoding", "utf-8")
    raw_table = config.store["raw_table"]

    if not csv_path.exists():
        raise StageError(f"Missing CSV input: {csv_path}")

    ragged: Counter[str] = Counter()
    try:
        columns = _read_header(csv_path, encoding)
        with TableStore(config.store_path(data_dir)) as store:
            written = store.replace_table(
                raw_table,
                [(name, "TEXT") for name in columns],
                _iter_csv_rows(csv_path, encoding, columns, ragged),
            )
    except (UnicodeDecodeError, csv.Error, OSError) as exc:
        raise StageError(f"Unreadable CSV input {csv_path}: {exc}") from exc

    message = f"loaded {written} rows into {raw_table}"
    if ragged["truncated"]:
        message += f"; {ragged['truncated']} rows had cells beyond the header and were truncated"
    log_event(
        logger,
        message,
        stage="load",
        source=str(csv_path),
        event="LOAD_DONE",
        status="warn" if ragged["truncated"] else "ok",
        rows_in=written,
        rows_out=written,
        duration_ms=elapsed_ms(started),
    )
    return {
        "table": raw_table,
        "columns": columns,
        "row_count": written,
        "truncated_rows": ragged["truncated"],
        "padded_rows": ragged["padded"],
    }
