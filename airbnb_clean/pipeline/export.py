"""Clean table CSV export."""

from __future__ import annotations

import logging
from pathlib import Path

from airbnb_clean.common.config_loader import PipelineConfig
from airbnb_clean.common.errors import StageError
from airbnb_clean.common.fs import write_csv
from airbnb_clean.common.logging import get_logger, log_event
from airbnb_clean.pipeline.clean import CLEAN_COLUMNS
from airbnb_clean.pipeline.store import TableStore

CLEAN_HEADERS = [name for name, _ in CLEAN_COLUMNS]


def _serialize_row(row: dict) -> dict:
    return {key: "" if row.get(key) is None else row.get(key) for key in CLEAN_HEADERS}


def run_export(config: PipelineConfig, data_dir: Path, logger: logging.Logger | None = None) -> Path:
    logger = get_logger(logger)
    clean_table = config.store["clean_table"]
    out_path = config.clean_csv_path(data_dir)

    with TableStore(config.store_path(data_dir)) as store:
        if not store.table_exists(clean_table):
            raise StageError(f"Clean table {clean_table} has not been built")
        row_count = store.count_rows(clean_table)
        write_csv(
            out_path,
            CLEAN_HEADERS,
            (_serialize_row(row) for row in store.iter_rows(clean_table, order_by="id", numeric_order=True)),
        )

    log_event(
        logger,
        f"exported {row_count} rows to {out_path.name}",
        stage="export",
        event="EXPORT_DONE",
        rows_out=row_count,
    )
    return out_path
