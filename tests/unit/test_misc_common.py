import gzip
import json
import logging
from pathlib import Path

from airbnb_clean.common.fs import open_text, write_csv, write_json
from airbnb_clean.common.logging import JsonLineFormatter, build_logger, close_logger
from airbnb_clean.common.time_utils import generate_run_id, parse_run_date


def test_generate_run_id_prefix():
    assert generate_run_id().startswith("run-")


def test_parse_run_date_defaults_and_iso():
    assert parse_run_date("2026-10-17") == "2026-10-17"
    assert len(parse_run_date(None)) == len("2026-10-17")


def test_open_text_reads_gzip(tmp_path: Path):
    path = tmp_path / "listings.csv.gz"
    with gzip.open(path, "wt", encoding="utf-8") as f:
        f.write("id,price\n1,$5\n")

    with open_text(path) as f:
        assert f.read() == "id,price\n1,$5\n"


def test_atomic_writers_leave_no_partial_files(tmp_path: Path):
    write_json(tmp_path / "out" / "a.json", {"b": 1, "a": 2})
    write_csv(tmp_path / "out" / "a.csv", ["x"], [{"x": 1, "ignored": 2}])

    assert (tmp_path / "out" / "a.json").read_text(encoding="utf-8").startswith('{\n  "a": 2')
    assert (tmp_path / "out" / "a.csv").read_text(encoding="utf-8") == "x\n1\n"
    assert sorted(p.name for p in (tmp_path / "out").iterdir()) == ["a.csv", "a.json"]


def test_json_line_formatter_emits_stable_fields():
    record = logging.LogRecord("airbnb_clean", logging.INFO, __file__, 1, "loaded %d rows", (3,), None)
    record.stage = "load"
    record.rows_in = 3

    payload = json.loads(JsonLineFormatter().format(record))

    assert payload["message"] == "loaded 3 rows"
    assert payload["stage"] == "load"
    assert payload["rows_in"] == 3
    assert payload["status"] == "ok"
    assert payload["error_code"] is None


def test_build_logger_closes_handlers_from_a_previous_build(tmp_path: Path):
    first = build_logger("run-same", data_dir=tmp_path)
    old_file_handler = next(h for h in first.handlers if isinstance(h, logging.FileHandler))

    second = build_logger("run-same", data_dir=tmp_path)

    assert old_file_handler.stream is None
    assert old_file_handler not in second.handlers
    close_logger(second)
    assert second.handlers == []
