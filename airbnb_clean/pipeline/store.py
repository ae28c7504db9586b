"""SQLite-backed tabular store for raw, clean and rejected listings."""

from __future__ import annotations

import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Iterator, Mapping, Sequence

from airbnb_clean.common.errors import StoreError
from airbnb_clean.common.fs import ensure_dir

STAGING_SUFFIX = "__staging"
INSERT_BATCH = 1000


def _quote(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


@dataclass(frozen=True)
class TableBuild:
    table: str
    columns: Sequence[tuple[str, str]]
    rows: Iterable[Mapping[str, object]]
    indexes: Mapping[str, str] = field(default_factory=dict)


class TableStore:
    """Thin wrapper over one SQLite database file.

    Tables are always rebuilt whole: ``replace_tables`` fills staging tables
    and swaps them in within one transaction, so readers never observe a
    half-written table and a failed run leaves the previous ones in place.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        try:
            ensure_dir(path.parent)
            self.conn = sqlite3.connect(str(path))
        except (OSError, sqlite3.Error) as exc:
            raise StoreError(f"Cannot open store at {path}: {exc}") from exc
        self.conn.row_factory = sqlite3.Row
        # Transactions are managed explicitly in replace_tables.
        self.conn.isolation_level = None

    def close(self) -> None:
        self.conn.close()

    def __enter__(self) -> "TableStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @contextmanager
    def _errors(self, action: str) -> Iterator[None]:
        try:
            yield
        except sqlite3.Error as exc:
            raise StoreError(f"{action} failed: {exc}") from exc

    def table_exists(self, table: str) -> bool:
        with self._errors(f"lookup of {table}"):
            row = self.conn.execute(
                "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = ?",
                (table,),
            ).fetchone()
        return row is not None

    def table_columns(self, table: str) -> list[str]:
        with self._errors(f"describe {table}"):
            rows = self.conn.execute(f"PRAGMA table_info({_quote(table)})").fetchall()
        return [row["name"] for row in rows]

    def count_rows(self, table: str) -> int:
        with self._errors(f"count {table}"):
            return int(self.conn.execute(f"SELECT COUNT(*) FROM {_quote(table)}").fetchone()[0])

    def iter_rows(self, table: str, order_by: str | None = None, *, numeric_order: bool = False) -> Iterator[dict]:
        """Yield rows as dicts; ``numeric_order`` sorts digit strings by value, ties by text."""
        if not self.table_exists(table):
            raise StoreError(f"Missing table: {table}")
        sql = f"SELECT * FROM {_quote(table)}"
        if order_by:
            column = _quote(order_by)
            sql += f" ORDER BY CAST({column} AS INTEGER), {column}" if numeric_order else f" ORDER BY {column}"
        with self._errors(f"read {table}"):
            for row in self.conn.execute(sql):
                yield dict(row)

    def fetch_all(self, sql: str, params: Sequence[object] = ()) -> list[dict]:
        with self._errors("query"):
            return [dict(row) for row in self.conn.execute(sql, params).fetchall()]

    def replace_table(
        self,
        table: str,
        columns: Sequence[tuple[str, str]],
        rows: Iterable[Mapping[str, object]],
        *,
        indexes: Mapping[str, str] | None = None,
    ) -> int:
        """Atomically replace ``table`` with ``rows``; returns rows written.

        ``columns`` is a list of ``(name, sqlite type)`` pairs and ``indexes``
        maps index name to indexed column.
        """
        (written,) = self.replace_tables([TableBuild(table, columns, rows, indexes or {})])
        return written

    def replace_tables(
        self,
        builds: Sequence[TableBuild],
        *,
        before_swap: Callable[[list[int]], None] | None = None,
    ) -> list[int]:
        """Fill one staging table per build, then swap them all in one transaction.

        Builds are filled in order, so a later build's rows may be produced while
        an earlier one is consumed. ``before_swap`` receives the row counts and
        may raise to abandon the whole replacement.
        """
        stagings = [f"{build.table}{STAGING_SUFFIX}" for build in builds]
        label = ", ".join(build.table for build in builds)

        counts: list[int] = []
        with self._errors(f"replace {label}"):
            for staging in stagings:
                self.conn.execute(f"DROP TABLE IF EXISTS {_quote(staging)}")
            self.conn.execute("BEGIN")
            try:
                for build, staging in zip(builds, stagings):
                    counts.append(self._fill_staging(staging, build))
                if before_swap is not None:
                    before_swap(counts)

                for build, staging in zip(builds, stagings):
                    self.conn.execute(f"DROP TABLE IF EXISTS {_quote(build.table)}")
                    self.conn.execute(f"ALTER TABLE {_quote(staging)} RENAME TO {_quote(build.table)}")
                    for index_name, column in build.indexes.items():
                        self.conn.execute(
                            f"CREATE INDEX IF NOT EXISTS {_quote(index_name)} "
                            f"ON {_quote(build.table)} ({_quote(column)})"
                        )
                self.conn.execute("COMMIT")
            except BaseException:
                self.conn.execute("ROLLBACK")
                raise
        return counts

    def _fill_staging(self, staging: str, build: TableBuild) -> int:
        names = [name for name, _ in build.columns]
        column_sql = ", ".join(f"{_quote(name)} {sql_type}" for name, sql_type in build.columns)
        insert_sql = (
            f"INSERT INTO {_quote(staging)} ({', '.join(_quote(n) for n in names)}) "
            f"VALUES ({', '.join('?' for _ in names)})"
        )

        self.conn.execute(f"CREATE TABLE {_quote(staging)} ({column_sql})")
        written = 0
        batch: list[tuple] = []
        for row in build.rows:
            batch.append(tuple(row.get(name) for name in names))
            if len(batch) >= INSERT_BATCH:
                self.conn.executemany(insert_sql, batch)
                written += len(batch)
                batch = []
        if batch:
            self.conn.executemany(insert_sql, batch)
            written += len(batch)
        return written
