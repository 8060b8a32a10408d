"""SQLite schema migrations."""
from __future__ import annotations

from typing import Iterable

from .sqlite import connect

SCHEMA: Iterable[str] = [
    """
CREATE TABLE IF NOT EXISTS interview_records (
  id TEXT PRIMARY KEY,
  job_id TEXT NOT NULL,
  name TEXT,
  email TEXT,
  overall_score INTEGER,
  status TEXT NOT NULL DEFAULT 'in_progress',
  current_phase TEXT NOT NULL DEFAULT 'introduction',
  disqualification_reason TEXT,
  is_veteran INTEGER,
  veteran_bonus_points INTEGER NOT NULL DEFAULT 0,
  model_used TEXT,
  processing_time_ms INTEGER,
  created_at TEXT NOT NULL,
  updated_at TEXT NOT NULL
);
""",
    """
CREATE TABLE IF NOT EXISTS mandatory_checks (
  record_id TEXT NOT NULL,
  check_id TEXT NOT NULL,
  status TEXT NOT NULL DEFAULT 'pending',
  extracted_value TEXT,
  raw_answer TEXT,
  PRIMARY KEY (record_id, check_id),
  FOREIGN KEY (record_id) REFERENCES interview_records(id) ON DELETE CASCADE
);
""",
    """
CREATE TABLE IF NOT EXISTS preferred_scores (
  record_id TEXT NOT NULL,
  dimension_id TEXT NOT NULL,
  score INTEGER NOT NULL DEFAULT 0,
  details TEXT,
  raw_answer TEXT,
  PRIMARY KEY (record_id, dimension_id),
  FOREIGN KEY (record_id) REFERENCES interview_records(id) ON DELETE CASCADE
);
""",
    """
CREATE TABLE IF NOT EXISTS transcript_entries (
  id INTEGER PRIMARY KEY AUTOINCREMENT,
  record_id TEXT NOT NULL,
  sequence INTEGER NOT NULL,
  role TEXT NOT NULL,
  message TEXT NOT NULL,
  timestamp TEXT NOT NULL,
  FOREIGN KEY (record_id) REFERENCES interview_records(id) ON DELETE CASCADE
);
""",
    """
CREATE INDEX IF NOT EXISTS idx_records_status ON interview_records (status, created_at);
""",
    """
CREATE INDEX IF NOT EXISTS idx_transcript_record ON transcript_entries (record_id, sequence);
""",
]


def migrate(db_path: str = "data/interviews.db") -> None:
    """Apply schema migrations to the SQLite database."""

    with connect(db_path) as conn:
        cur = conn.cursor()
        for stmt in SCHEMA:
            cur.execute(stmt)


if __name__ == "__main__":
    from config.settings import settings

    migrate(settings.DB_PATH)
