"""
In-memory persistence and the persistence factory.
"""

import threading
from typing import Any, Dict, List, Optional, Tuple

from ..core.entities import EvaluationComponent, StudentScore, SplitSeries
from ..core.exceptions import ConcurrencyError, ConfigurationError, NotFoundError
from ..core.interfaces import PersistenceAPI
from .database import DatabaseFactory
from .repositories import SQLitePersistence


class InMemoryPersistence(PersistenceAPI):
    """Process-local PersistenceAPI; entities are stored as dictionaries."""

    def __init__(self):
        self._schemas: Dict[str, Tuple[List[Dict[str, Any]], int]] = {}  # course_id -> (components, version)
        self._scores: Dict[Tuple[str, str, str], Tuple[float, int]] = {}  # (course, enrollment, key) -> (value, version)
        self._series: Dict[str, Dict[str, Any]] = {}  # series id -> data
        self._lock = threading.RLock()

    def get_schema(self, course_id: str) -> List[EvaluationComponent]:
        with self._lock:
            components, _ = self._schemas.get(course_id, ([], 0))
            return [EvaluationComponent.from_dict(data) for data in components]

    def get_schema_version(self, course_id: str) -> int:
        with self._lock:
            return self._schemas.get(course_id, ([], 0))[1]

    def save_schema(self, course_id: str, components: List[EvaluationComponent],
                    expected_version: Optional[int] = None) -> int:
        with self._lock:
            current = self.get_schema_version(course_id)
            self._check_version(f"Schema of course {course_id}", expected_version, current)
            self._schemas[course_id] = ([c.to_dict() for c in components], current + 1)
            return current + 1

    def get_scores(self, course_id: str) -> List[StudentScore]:
        with self._lock:
            return [
                StudentScore(enrollment_id, key, value, version)
                for (course, enrollment_id, key), (value, version) in sorted(self._scores.items())
                if course == course_id
            ]

    def save_score(self, course_id: str, enrollment_id: str, component_key: str,
                   value: float, expected_version: Optional[int] = None) -> int:
        with self._lock:
            record_key = (course_id, enrollment_id, component_key)
            current = self._scores.get(record_key, (None, 0))[1]
            self._check_version(f"Score {enrollment_id}/{component_key}", expected_version, current)
            self._scores[record_key] = (float(value), current + 1)
            return current + 1

    def get_split_series(self, component_id: str) -> Optional[SplitSeries]:
        with self._lock:
            for data in self._series.values():
                if data['parent_component_id'] == component_id:
                    return SplitSeries.from_dict(data)
            return None

    def save_split_series(self, series: SplitSeries) -> None:
        with self._lock:
            self._series[series.id] = series.to_dict()

    def save_split_item(self, series_id: str, enrollment_id: str, index: int, score: float) -> None:
        with self._lock:
            data = self._series.get(series_id)
            if data is None:
                raise NotFoundError(f"Split series {series_id} not found", details={'series_id': series_id})
            series = SplitSeries.from_dict(data)
            series.record(enrollment_id, index, score)
            self._series[series_id] = series.to_dict()

    def get_statistics(self) -> Dict[str, Any]:
        with self._lock:
            return {
                'evaluation_schemas': len(self._schemas),
                'student_scores': len(self._scores),
                'split_series': len(self._series)
            }

    @staticmethod
    def _check_version(resource: str, expected_version: Optional[int], current: int) -> None:
        if expected_version is not None and expected_version != current:
            raise ConcurrencyError(
                f"{resource} was modified concurrently (expected version {expected_version}, "
                f"found {current})",
                error_code="STALE_VERSION",
                details={'expected_version': expected_version, 'current_version': current}
            )


class PersistenceFactory:
    """Factory for creating PersistenceAPI implementations."""

    @staticmethod
    def create_persistence(persistence_type: str = "memory", **config) -> PersistenceAPI:
        """Create a persistence backend: "memory" or "sqlite"."""
        persistence_type = persistence_type.lower()
        if persistence_type == "memory":
            return InMemoryPersistence()
        if persistence_type == "sqlite":
            database = DatabaseFactory.create_database(
                "sqlite", database_path=config.get('database_path', 'gradebook.db')
            )
            return SQLitePersistence(database)
        raise ConfigurationError(f"Unsupported persistence type: {persistence_type}")
