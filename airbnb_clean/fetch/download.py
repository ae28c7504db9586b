"""Fetch stage: download the listings export."""

from __future__ import annotations

import logging
import time
from pathlib import Path

from airbnb_clean.common.config_loader import PipelineConfig
from airbnb_clean.common.http import HttpClient, TimeoutConfig
from airbnb_clean.common.logging import get_logger, log_event
from airbnb_clean.common.time_utils import elapsed_ms


def run_fetch(
    config: PipelineConfig,
    data_dir: Path,
    logger: logging.Logger | None = None,
    http_client: HttpClient | None = None,
) -> dict:
    logger = get_logger(logger)
    fetch_cfg = config.fetch
    dest = config.raw_csv_path(data_dir)

    if not fetch_cfg["enabled"]:
        log_event(logger, "fetch disabled; using local CSV", stage="fetch", event="FETCH_SKIPPED", status="skipped")
        return {"skipped": True, "path": str(dest), "bytes": 0}

    url = fetch_cfg["url"]
    started = time.monotonic()
    client = http_client or HttpClient()
    try:
        written = client.download_file(
            url,
            dest,
            timeout=TimeoutConfig(read=float(fetch_cfg.get("timeout_seconds") or 300)),
        )
    finally:
        if http_client is None:
            client.close()

    log_event(
        logger,
        f"downloaded {written} bytes",
        stage="fetch",
        source=url,
        event="FETCH_DONE",
        duration_ms=elapsed_ms(started),
    )
    return {"skipped": False, "path": str(dest), "bytes": written}
