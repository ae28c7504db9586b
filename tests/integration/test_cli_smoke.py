import csv
import json
import logging
from pathlib import Path

import pytest

from airbnb_clean.cli import parse_args, run_command
from airbnb_clean.common.constants import EXIT_PARTIAL, EXIT_SUCCESS
from airbnb_clean.pipeline.store import TableStore

HEADER = ["id", "host_id", "name", "neighbourhood_cleansed", "latitude", "longitude", "price", "host_response_rate"]


def write_listings_csv(data_dir: Path) -> Path:
    path = data_dir / "raw" / "listings.csv"
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        writer.writerow(["1", "10", "Loft", "Midtown", "40.7", "-73.9", "$50.00", "95%"])
        writer.writerow(["2", "11", "Room", "Midtown", "40.7", "-73.9", "", "N/A"])
        writer.writerow(["", "12", "Studio", "Harlem", "40.8", "-73.95", "$30", ""])
    return path


def _args(data_dir: Path, command: str = "all", *extra: str):
    return parse_args(
        [
            command,
            "--config-dir",
            "config",
            "--data-dir",
            str(data_dir),
            "--run-date",
            "2026-10-17",
            "--run-id",
            "run-test",
            *extra,
        ]
    )


@pytest.mark.integration
def test_cli_all_admits_only_the_valid_listing(tmp_path: Path):
    data_dir = tmp_path / "data"
    write_listings_csv(data_dir)

    assert run_command(_args(data_dir)) == EXIT_SUCCESS

    with TableStore(data_dir / "store" / "airbnb.sqlite") as store:
        assert store.count_rows("airbnb_listings_raw") == 3
        clean = list(store.iter_rows("airbnb_listings_clean"))
        raw_price = store.fetch_all("SELECT price FROM airbnb_listings_raw WHERE id = '2'")
    assert [row["id"] for row in clean] == ["1"]
    assert clean[0]["price_usd"] == 50
    assert clean[0]["host_response_rate_pct"] == 95
    assert raw_price == [{"price": ""}]

    stats = json.loads((data_dir / "intermediate" / "clean_stats.json").read_text(encoding="utf-8"))
    reasons = {sample["id"]: sample["exclusion_reason"] for sample in stats["rejected_samples"]}
    assert reasons == {"2": "missing_or_invalid_price", None: "missing_id"}

    summary = json.loads((data_dir / "out" / "reports" / "run_summary.json").read_text(encoding="utf-8"))
    assert summary["status"] == "partial"
    assert summary["totals"] == {"rows_in": 3, "admitted": 1, "rejected": 2}
    assert summary["quality_summary"] == {"total_rows": 3, "missing_id": 1, "missing_price": 1, "missing_geo": 0}

    assert (data_dir / "out" / "airbnb_listings_clean.csv").exists()
    assert (data_dir / "run_meta" / "run-test.log.jsonl").exists()


@pytest.mark.integration
def test_cli_reports_partial_failure_when_csv_missing(tmp_path: Path):
    data_dir = tmp_path / "data"

    assert run_command(_args(data_dir, "load")) == EXIT_PARTIAL

    log_lines = (data_dir / "run_meta" / "run-test.log.jsonl").read_text(encoding="utf-8").splitlines()
    failures = [json.loads(line) for line in log_lines if '"STAGE_FAIL"' in line]
    assert failures[0]["error_code"] == "STAGE_ERROR"
    assert failures[0]["status"] == "error"


@pytest.mark.integration
def test_failed_clean_keeps_previous_clean_table(tmp_path: Path, monkeypatch):
    data_dir = tmp_path / "data"
    write_listings_csv(data_dir)
    assert run_command(_args(data_dir)) == EXIT_SUCCESS

    from airbnb_clean.pipeline import clean

    def broken_validate(_raw):
        raise RuntimeError("validator crashed")

    monkeypatch.setattr(clean, "validate_record", broken_validate)

    assert run_command(_args(data_dir, "clean", "--strict")) == 20
    with TableStore(data_dir / "store" / "airbnb.sqlite") as store:
        assert store.count_rows("airbnb_listings_clean") == 1


@pytest.mark.integration
def test_failed_rejects_write_keeps_previous_clean_and_rejects_tables(tmp_path: Path, monkeypatch):
    data_dir = tmp_path / "data"
    overlay_dir = tmp_path / "overlay"
    overlay_dir.mkdir()
    (overlay_dir / "pipeline.yml").write_text("store:\n  persist_rejects: true\n", encoding="utf-8")
    write_listings_csv(data_dir)
    assert run_command(_args(data_dir, "all", "--overlay-config-dir", str(overlay_dir))) == EXIT_SUCCESS

    with (data_dir / "raw" / "listings.csv").open("w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f)
        writer.writerow(HEADER)
        writer.writerow(["9", "19", "Attic", "Soho", "40.72", "-74.0", "$80", "100%"])
        writer.writerow(["8", "18", "Cellar", "Soho", "40.72", "-74.0", "abc", ""])

    from airbnb_clean.pipeline import clean

    monkeypatch.setattr(clean, "REJECTED_COLUMNS", [("id", "TEXT"), ("id", "TEXT")])

    assert run_command(_args(data_dir, "all", "--strict", "--overlay-config-dir", str(overlay_dir))) == 20
    with TableStore(data_dir / "store" / "airbnb.sqlite") as store:
        assert store.count_rows("airbnb_listings_raw") == 2
        assert [row["id"] for row in store.iter_rows("airbnb_listings_clean")] == ["1"]
        assert store.count_rows("airbnb_listings_rejected") == 2
        assert not store.table_exists("airbnb_listings_clean__staging")


@pytest.mark.integration
def test_run_command_releases_log_handlers(tmp_path: Path):
    data_dir = tmp_path / "data"
    write_listings_csv(data_dir)

    run_command(_args(data_dir, "load"))

    assert logging.getLogger("airbnb_clean.run-test").handlers == []
