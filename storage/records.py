from __future__ import annotations  # Interview record persistence with field-level updates

import json
import logging
import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence, Tuple

from interview.models import (
    InterviewRecord,
    MandatoryCheck,
    PersonalInfo,
    PreferredScore,
    Qualifications,
    RecordPatch,
    TranscriptEntry,
    VeteranBonus,
)

from .migrate import migrate
from .sqlite import connect

logger = logging.getLogger(__name__)  # Module logger setup

_SCALAR_COLUMNS: Tuple[str, ...] = (
    "name",
    "email",
    "current_phase",
    "status",
    "overall_score",
    "disqualification_reason",
    "model_used",
    "processing_time_ms",
)


class RecordNotFound(LookupError):  # Unknown conversation id
    def __init__(self, record_id: str) -> None:
        super().__init__(f"Conversation {record_id} not found")
        self.record_id = record_id


def _now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


class SqliteRecordStore:  # SQLite-backed store for interview records and transcripts
    def __init__(self, path: str | Path) -> None:  # Initialize store and ensure schema
        self._path = str(path)
        migrate(self._path)

    @property
    def path(self) -> str:
        return self._path

    def create(self, job_id: str) -> InterviewRecord:  # Insert a fresh in-progress record
        record_id = uuid.uuid4().hex
        now = _now()
        with connect(self._path) as conn:
            conn.execute(
                """
                INSERT INTO interview_records (id, job_id, status, current_phase, created_at, updated_at)
                VALUES (?, ?, 'in_progress', 'introduction', ?, ?)
                """,
                (record_id, job_id, now, now),
            )
        logger.info("Created interview record id=%s job=%s", record_id, job_id)
        return self.get(record_id)

    def get(self, record_id: str) -> InterviewRecord:  # Load a full record or raise RecordNotFound
        with connect(self._path) as conn:
            return self._load(conn, record_id)

    def update_fields(self, record_id: str, patch: RecordPatch) -> InterviewRecord:  # Apply a sparse patch
        with connect(self._path) as conn:
            self._require(conn, record_id)
            self._apply(conn, record_id, patch)
            return self._load(conn, record_id)

    def append_transcript(self, record_id: str, entries: Sequence[TranscriptEntry]) -> None:  # Append in order
        with connect(self._path) as conn:
            self._require(conn, record_id)
            self._append(conn, record_id, entries)

    def commit_turn(
        self,
        record_id: str,
        patch: RecordPatch,
        entries: Sequence[TranscriptEntry],
    ) -> InterviewRecord:  # Patch and transcript pair in one transaction
        with connect(self._path) as conn:
            self._require(conn, record_id)
            self._apply(conn, record_id, patch)
            self._append(conn, record_id, entries)
            return self._load(conn, record_id)

    def _require(self, conn: sqlite3.Connection, record_id: str) -> None:
        row = conn.execute("SELECT 1 FROM interview_records WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise RecordNotFound(record_id)

    def _apply(self, conn: sqlite3.Connection, record_id: str, patch: RecordPatch) -> None:
        assignments: List[str] = []
        params: List[Any] = []
        for column in _SCALAR_COLUMNS:
            value = getattr(patch, column)
            if value is not None:
                assignments.append(f"{column} = ?")
                params.append(value)
        if patch.clear_overall_score and patch.overall_score is None:
            assignments.append("overall_score = NULL")
        if patch.veteran is not None:
            if patch.veteran.is_veteran is not None:
                assignments.append("is_veteran = ?")
                params.append(int(patch.veteran.is_veteran))
            if patch.veteran.bonus_points is not None:
                assignments.append("veteran_bonus_points = ?")
                params.append(patch.veteran.bonus_points)
        assignments.append("updated_at = ?")
        params.append(_now())
        conn.execute(
            f"UPDATE interview_records SET {', '.join(assignments)} WHERE id = ?",
            (*params, record_id),
        )

        for check_id, check in patch.mandatory.items():
            value = None if check.extracted_value is None else json.dumps(check.extracted_value, default=str)
            conn.execute(
                """
                INSERT INTO mandatory_checks (record_id, check_id, status, extracted_value, raw_answer)
                VALUES (?, ?, COALESCE(?, 'pending'), ?, ?)
                ON CONFLICT(record_id, check_id) DO UPDATE SET
                    status = COALESCE(?, status),
                    extracted_value = COALESCE(?, extracted_value),
                    raw_answer = COALESCE(?, raw_answer)
                """,
                (record_id, check_id, check.status, value, check.raw_answer, check.status, value, check.raw_answer),
            )
        for dimension_id, dimension in patch.preferred.items():
            conn.execute(
                """
                INSERT INTO preferred_scores (record_id, dimension_id, score, details, raw_answer)
                VALUES (?, ?, COALESCE(?, 0), ?, ?)
                ON CONFLICT(record_id, dimension_id) DO UPDATE SET
                    score = COALESCE(?, score),
                    details = COALESCE(?, details),
                    raw_answer = COALESCE(?, raw_answer)
                """,
                (
                    record_id,
                    dimension_id,
                    dimension.score,
                    dimension.details,
                    dimension.raw_answer,
                    dimension.score,
                    dimension.details,
                    dimension.raw_answer,
                ),
            )

    def _append(self, conn: sqlite3.Connection, record_id: str, entries: Sequence[TranscriptEntry]) -> None:
        if not entries:
            return
        row = conn.execute(
            "SELECT COALESCE(MAX(sequence), 0) AS last FROM transcript_entries WHERE record_id = ?",
            (record_id,),
        ).fetchone()
        sequence = int(row["last"])
        for entry in entries:
            sequence += 1
            conn.execute(
                """
                INSERT INTO transcript_entries (record_id, sequence, role, message, timestamp)
                VALUES (?, ?, ?, ?, ?)
                """,
                (record_id, sequence, entry.role, entry.message, entry.timestamp.isoformat()),
            )
        conn.execute("UPDATE interview_records SET updated_at = ? WHERE id = ?", (_now(), record_id))

    def _load(self, conn: sqlite3.Connection, record_id: str) -> InterviewRecord:
        row = conn.execute("SELECT * FROM interview_records WHERE id = ?", (record_id,)).fetchone()
        if row is None:
            raise RecordNotFound(record_id)
        mandatory: Dict[str, MandatoryCheck] = {}
        for item in conn.execute(
            "SELECT check_id, status, extracted_value, raw_answer FROM mandatory_checks WHERE record_id = ?",
            (record_id,),
        ):
            value = json.loads(item["extracted_value"]) if item["extracted_value"] is not None else None
            mandatory[item["check_id"]] = MandatoryCheck(
                status=item["status"],
                extracted_value=value,
                raw_answer=item["raw_answer"],
            )
        preferred: Dict[str, PreferredScore] = {}
        for item in conn.execute(
            "SELECT dimension_id, score, details, raw_answer FROM preferred_scores WHERE record_id = ?",
            (record_id,),
        ):
            preferred[item["dimension_id"]] = PreferredScore(
                score=item["score"],
                details=item["details"],
                raw_answer=item["raw_answer"],
            )
        transcript = [
            TranscriptEntry(role=item["role"], message=item["message"], timestamp=item["timestamp"])
            for item in conn.execute(
                "SELECT role, message, timestamp FROM transcript_entries WHERE record_id = ? ORDER BY sequence",
                (record_id,),
            )
        ]
        is_veteran = row["is_veteran"]
        return InterviewRecord(
            id=row["id"],
            job_id=row["job_id"],
            personal_info=PersonalInfo(name=row["name"], email=row["email"]),
            qualifications=Qualifications(
                mandatory=mandatory,
                preferred=preferred,
                veteran=VeteranBonus(
                    is_veteran=None if is_veteran is None else bool(is_veteran),
                    bonus_points=row["veteran_bonus_points"],
                ),
            ),
            overall_score=row["overall_score"],
            status=row["status"],
            current_phase=row["current_phase"],
            disqualification_reason=row["disqualification_reason"],
            transcript=transcript,
            model_used=row["model_used"],
            processing_time_ms=row["processing_time_ms"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )


__all__ = ["RecordNotFound", "SqliteRecordStore"]
