from pathlib import Path

from airbnb_clean.common.config_loader import load_config
from airbnb_clean.common.fs import read_json
from airbnb_clean.pipeline.checks import profile_rows, run_checks
from airbnb_clean.pipeline.store import TableStore


def _rows() -> list[dict]:
    return [
        {"id": "1", "host_id": "10", "room_type": "Private room", "property_type": "Condo", "neighbourhood_cleansed": "Soho", "latitude": "40.7", "longitude": "-73.9", "price": "$50.00", "host_response_rate": "100%"},
        {"id": "1", "host_id": "", "room_type": "Private room", "neighbourhood_cleansed": "Soho", "latitude": None, "longitude": "-73.9", "price": "", "host_response_rate": "N/A"},
        {"id": None, "host_id": "12", "room_type": " ", "latitude": "95", "longitude": "-73.9", "price": "free", "host_acceptance_rate": "120%"},
        {"id": "4", "host_id": "13", "room_type": "Entire home/apt", "latitude": "40", "longitude": "200", "price": "$3,000", "minimum_nights": "7", "maximum_nights": "2", "availability_30": "45", "review_scores_rating": "-1"},
    ]


def test_profile_rows_counts_issues():
    profile = profile_rows(_rows())
    checks = profile["checks"]

    assert profile["summary"] == {"total_rows": 4, "missing_id": 1, "missing_price": 1, "missing_geo": 1}
    assert checks["duplicate_id_count"] == 1
    assert profile["duplicate_ids"] == [{"value": "1", "count": 2}]
    assert checks["null_host_id"] == 1
    assert checks["null_room_type"] == 1
    assert checks["null_property_type"] == 3
    assert checks["neighbourhood_but_no_geo"] == 1
    assert checks["out_of_range_geo"] == 2
    assert checks["invalid_price_format"] == 1
    assert checks["extreme_price_count"] == 1
    assert checks["min_gt_max_nights"] == 1
    assert checks["invalid_availability"] == 1
    assert checks["invalid_host_response_rate_format"] == 1
    assert checks["acceptance_rate_gt_100"] == 1
    assert checks["response_rate_gt_100"] == 0
    assert checks["invalid_review_scores"] == 1
    assert profile["room_types"][0] == {"value": "Private room", "count": 2}


def test_profile_rows_empty_input():
    profile = profile_rows([])
    assert profile["summary"]["total_rows"] == 0
    assert profile["duplicate_ids"] == []


def test_run_checks_writes_quality_report(tmp_path: Path):
    config = load_config(Path("config"))
    columns = sorted({key for row in _rows() for key in row})
    with TableStore(config.store_path(tmp_path)) as store:
        store.replace_table(config.store["raw_table"], [(name, "TEXT") for name in columns], _rows())

    report_path = run_checks(config, tmp_path, run_id="run-1", run_date="2026-10-17")

    report = read_json(report_path)
    assert report_path == tmp_path / "out" / "reports" / "quality_report.json"
    assert report["warnings"] == ["DUPLICATE_IDS_PRESENT"]
    assert report["summary"]["total_rows"] == 4
