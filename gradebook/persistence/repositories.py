"""
Repository pattern implementations of the persistence contract.
"""

import json
import threading
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from ..core.entities import EvaluationComponent, StudentScore, SplitSeries
from ..core.exceptions import ConcurrencyError, NotFoundError, PersistenceError
from ..core.interfaces import PersistenceAPI
from .database import DatabaseManager


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _stale(resource: str, expected_version: int, current_version: int) -> ConcurrencyError:
    return ConcurrencyError(
        f"{resource} was modified concurrently (expected version {expected_version}, "
        f"found {current_version})",
        error_code="STALE_VERSION",
        details={'expected_version': expected_version, 'current_version': current_version}
    )


class SchemaRepository:
    """Evaluation schemas stored as one JSON document per course."""

    def __init__(self, database: DatabaseManager):
        self._database = database
        self._lock = threading.RLock()

    def find(self, course_id: str) -> List[EvaluationComponent]:
        rows = self._database.execute_query(
            "SELECT data FROM evaluation_schemas WHERE course_id = ?", (course_id,)
        )
        if not rows:
            return []
        try:
            return [EvaluationComponent.from_dict(item) for item in json.loads(rows[0]["data"])]
        except (ValueError, KeyError) as e:
            raise PersistenceError(f"Corrupt schema for course {course_id}: {str(e)}") from e

    def version(self, course_id: str) -> int:
        rows = self._database.execute_query(
            "SELECT version FROM evaluation_schemas WHERE course_id = ?", (course_id,)
        )
        return rows[0]["version"] if rows else 0

    def save(self, course_id: str, components: List[EvaluationComponent],
             expected_version: Optional[int] = None) -> int:
        """Replace the schema; with expected_version, only if it is still current."""
        data = json.dumps([c.to_dict() for c in components])
        with self._lock:
            current = self.version(course_id)
            if expected_version is not None and expected_version != current:
                raise _stale(f"Schema of course {course_id}", expected_version, current)

            if current == 0:
                self._database.execute_update(
                    "INSERT INTO evaluation_schemas (course_id, data, version, updated_at) VALUES (?, ?, 1, ?)",
                    (course_id, data, _now())
                )
                return 1

            updated = self._database.execute_update(
                """
                UPDATE evaluation_schemas SET data = ?, version = version + 1, updated_at = ?
                WHERE course_id = ? AND version = ?
                """,
                (data, _now(), course_id, current)
            )
            if updated == 0:
                raise _stale(f"Schema of course {course_id}", current, self.version(course_id))
            return current + 1


class ScoreRepository:
    """One row per (course, enrollment, component key)."""

    def __init__(self, database: DatabaseManager):
        self._database = database
        self._lock = threading.RLock()

    def find_by_course(self, course_id: str) -> List[StudentScore]:
        rows = self._database.execute_query(
            """
            SELECT enrollment_id, component_key, value, version FROM student_scores
            WHERE course_id = ? ORDER BY enrollment_id, component_key
            """,
            (course_id,)
        )
        return [
            StudentScore(row["enrollment_id"], row["component_key"], row["value"], row["version"])
            for row in rows
        ]

    def version(self, course_id: str, enrollment_id: str, component_key: str) -> int:
        rows = self._database.execute_query(
            """
            SELECT version FROM student_scores
            WHERE course_id = ? AND enrollment_id = ? AND component_key = ?
            """,
            (course_id, enrollment_id, component_key)
        )
        return rows[0]["version"] if rows else 0

    def save(self, course_id: str, enrollment_id: str, component_key: str, value: float,
             expected_version: Optional[int] = None) -> int:
        with self._lock:
            current = self.version(course_id, enrollment_id, component_key)
            if expected_version is not None and expected_version != current:
                raise _stale(f"Score {enrollment_id}/{component_key}", expected_version, current)

            if current == 0:
                self._database.execute_update(
                    """
                    INSERT INTO student_scores (course_id, enrollment_id, component_key, value, version, updated_at)
                    VALUES (?, ?, ?, ?, 1, ?)
                    """,
                    (course_id, enrollment_id, component_key, value, _now())
                )
                return 1

            self._database.execute_update(
                """
                UPDATE student_scores SET value = ?, version = version + 1, updated_at = ?
                WHERE course_id = ? AND enrollment_id = ? AND component_key = ?
                """,
                (value, _now(), course_id, enrollment_id, component_key)
            )
            return current + 1


class SplitSeriesRepository:
    """Split series stored as JSON documents, including their grading history."""

    def __init__(self, database: DatabaseManager):
        self._database = database
        self._lock = threading.RLock()

    def find_by_component(self, component_id: str) -> Optional[SplitSeries]:
        rows = self._database.execute_query(
            "SELECT data FROM split_series WHERE parent_component_id = ?", (component_id,)
        )
        return SplitSeries.from_dict(json.loads(rows[0]["data"])) if rows else None

    def find_by_id(self, series_id: str) -> Optional[SplitSeries]:
        rows = self._database.execute_query(
            "SELECT data FROM split_series WHERE id = ?", (series_id,)
        )
        return SplitSeries.from_dict(json.loads(rows[0]["data"])) if rows else None

    def save(self, series: SplitSeries) -> None:
        with self._lock:
            self._database.execute_update(
                """
                INSERT INTO split_series (id, parent_component_id, data, version, updated_at)
                VALUES (?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    data = excluded.data, version = excluded.version, updated_at = excluded.updated_at
                """,
                (series.id, series.parent_component_id, json.dumps(series.to_dict()), series.version, _now())
            )

    def save_item(self, series_id: str, enrollment_id: str, index: int, score: float) -> None:
        with self._lock:
            series = self.find_by_id(series_id)
            if series is None:
                raise NotFoundError(f"Split series {series_id} not found", details={'series_id': series_id})
            series.record(enrollment_id, index, score)
            self.save(series)


class SQLitePersistence(PersistenceAPI):
    """PersistenceAPI backed by a DatabaseManager."""

    def __init__(self, database: DatabaseManager):
        self._database = database
        self._schemas = SchemaRepository(database)
        self._scores = ScoreRepository(database)
        self._series = SplitSeriesRepository(database)

    def get_schema(self, course_id: str) -> List[EvaluationComponent]:
        return self._schemas.find(course_id)

    def get_schema_version(self, course_id: str) -> int:
        return self._schemas.version(course_id)

    def save_schema(self, course_id: str, components: List[EvaluationComponent],
                    expected_version: Optional[int] = None) -> int:
        return self._schemas.save(course_id, components, expected_version)

    def get_scores(self, course_id: str) -> List[StudentScore]:
        return self._scores.find_by_course(course_id)

    def save_score(self, course_id: str, enrollment_id: str, component_key: str,
                   value: float, expected_version: Optional[int] = None) -> int:
        return self._scores.save(course_id, enrollment_id, component_key, value, expected_version)

    def get_split_series(self, component_id: str) -> Optional[SplitSeries]:
        return self._series.find_by_component(component_id)

    def save_split_series(self, series: SplitSeries) -> None:
        self._series.save(series)

    def save_split_item(self, series_id: str, enrollment_id: str, index: int, score: float) -> None:
        self._series.save_item(series_id, enrollment_id, index, score)

    def get_statistics(self) -> Dict[str, Any]:
        """Row counts per table."""
        counts = {}
        for table in ("evaluation_schemas", "student_scores", "split_series"):
            rows = self._database.execute_query(f"SELECT COUNT(*) AS n FROM {table}")
            counts[table] = rows[0]["n"]
        return counts
