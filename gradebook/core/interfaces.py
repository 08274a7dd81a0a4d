"""
Core interfaces and abstract base classes for the gradebook engine.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from .entities import EvaluationComponent, StudentScore, SplitSeries


class PersistenceAPI(ABC):
    """Storage collaborator for schemas, scores and split series.

    Implementations raise PersistenceError on failure and ConcurrencyError
    when an expected_version does not match the stored one. Passing no
    expected_version means last write wins.
    """

    @abstractmethod
    def get_schema(self, course_id: str) -> List[EvaluationComponent]:
        """Get the evaluation components of a course."""
        pass

    @abstractmethod
    def get_schema_version(self, course_id: str) -> int:
        """Get the stored schema version, 0 if none was saved."""
        pass

    @abstractmethod
    def save_schema(self, course_id: str, components: List[EvaluationComponent],
                    expected_version: Optional[int] = None) -> int:
        """Replace the schema of a course and return the new version."""
        pass

    @abstractmethod
    def get_scores(self, course_id: str) -> List[StudentScore]:
        """Get every stored score of a course."""
        pass

    @abstractmethod
    def save_score(self, course_id: str, enrollment_id: str, component_key: str,
                   value: float, expected_version: Optional[int] = None) -> int:
        """Store one score and return its new version."""
        pass

    @abstractmethod
    def get_split_series(self, component_id: str) -> Optional[SplitSeries]:
        """Get the split series of a component, if any."""
        pass

    @abstractmethod
    def save_split_series(self, series: SplitSeries) -> None:
        """Store the configuration and items of a split series."""
        pass

    @abstractmethod
    def save_split_item(self, series_id: str, enrollment_id: str, index: int, score: float) -> None:
        """Store the score of one item of a split series."""
        pass


class CourseEnrollmentService(ABC):
    """Source of the active roster of a course."""

    @abstractmethod
    def active_enrollments(self, course_id: str, period_id: Optional[str] = None) -> List[str]:
        """Get active enrollment IDs for a course and optional period."""
        pass
