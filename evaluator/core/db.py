"""SQLite persistence for the job and file stores.

Both stores keep their authoritative copy in memory and write the whole
collection back on every change, so each ``replace_*`` call swaps the table
contents inside a single transaction.
"""

import json
import logging
import sqlite3
from pathlib import Path

from pydantic import ValidationError

from evaluator.core.schemas import FileRecord, Job

logger = logging.getLogger(__name__)

_JOBS_TABLE = """
CREATE TABLE IF NOT EXISTS jobs (
    id          TEXT PRIMARY KEY,
    status      TEXT NOT NULL,
    result_json TEXT,
    error       TEXT
);
"""

_FILES_TABLE = """
CREATE TABLE IF NOT EXISTS files (
    id    TEXT PRIMARY KEY,
    name  TEXT NOT NULL,
    path  TEXT NOT NULL
);
"""


def init_db(path: str | Path) -> sqlite3.Connection:
    """Create the database and tables, returning a connection."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    conn.execute(_JOBS_TABLE)
    conn.execute(_FILES_TABLE)
    conn.commit()
    return conn


def load_jobs(conn: sqlite3.Connection) -> list[Job]:
    """Return every stored job in insertion order, skipping malformed rows."""
    jobs: list[Job] = []
    for row in conn.execute("SELECT id, status, result_json, error FROM jobs ORDER BY rowid"):
        try:
            result = json.loads(row["result_json"]) if row["result_json"] else None
            jobs.append(
                Job.model_validate(
                    {
                        "id": row["id"],
                        "status": row["status"],
                        "result": result,
                        "error": row["error"],
                    }
                )
            )
        except (json.JSONDecodeError, ValidationError):
            logger.warning("Skipping malformed job row '%s'", row["id"], exc_info=True)
    return jobs


def replace_jobs(conn: sqlite3.Connection, jobs: list[Job]) -> None:
    """Overwrite the stored job collection with ``jobs`` atomically."""
    rows = [
        (
            job.id,
            job.status.value,
            job.result.model_dump_json() if job.result is not None else None,
            job.error,
        )
        for job in jobs
    ]
    with conn:
        conn.execute("DELETE FROM jobs")
        conn.executemany(
            "INSERT INTO jobs (id, status, result_json, error) VALUES (?, ?, ?, ?)",
            rows,
        )


def load_files(conn: sqlite3.Connection) -> list[FileRecord]:
    """Return every stored file record in insertion order."""
    records: list[FileRecord] = []
    for row in conn.execute("SELECT id, name, path FROM files ORDER BY rowid"):
        if not row["id"] or not row["path"]:
            logger.warning("Skipping file row without id or path")
            continue
        records.append(FileRecord(id=row["id"], name=row["name"], path=row["path"]))
    return records


def replace_files(conn: sqlite3.Connection, records: list[FileRecord]) -> None:
    """Overwrite the stored file collection with ``records`` atomically."""
    with conn:
        conn.execute("DELETE FROM files")
        conn.executemany(
            "INSERT INTO files (id, name, path) VALUES (?, ?, ?)",
            [(r.id, r.name, r.path) for r in records],
        )
