from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import pytest

from airbnb_clean.common.config_loader import load_config
from airbnb_clean.fetch.download import run_fetch


class FakeHttpClient:
    def __init__(self, body: bytes):
        self.body = body
        self.calls: list[tuple[str, Path]] = []

    def download_file(self, url: str, dest: Path, **_kwargs) -> int:
        self.calls.append((url, dest))
        dest.parent.mkdir(parents=True, exist_ok=True)
        dest.write_bytes(self.body)
        return len(self.body)

    def close(self):
        return None


@pytest.mark.integration
def test_fetch_downloads_to_raw_csv_path(tmp_path: Path):
    config = load_config(Path("config"))
    config = replace(config, fetch={**config.fetch, "enabled": True, "url": "https://example.test/listings.csv"})
    client = FakeHttpClient(b"id,price\n1,$5\n")

    result = run_fetch(config, tmp_path, http_client=client)

    assert result["skipped"] is False
    assert result["bytes"] == len(b"id,price\n1,$5\n")
    assert client.calls == [("https://example.test/listings.csv", tmp_path / "raw" / "listings.csv")]
    assert (tmp_path / "raw" / "listings.csv").read_bytes() == b"id,price\n1,$5\n"


@pytest.mark.integration
def test_fetch_skips_when_disabled(tmp_path: Path):
    config = load_config(Path("config"))
    client = FakeHttpClient(b"")

    result = run_fetch(config, tmp_path, http_client=client)

    assert result["skipped"] is True
    assert client.calls == []
