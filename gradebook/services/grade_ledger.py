"""
Per-student score storage and the prorated weighted average.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..core.entities import EvaluationComponent, StudentScore, SplitSeries, validate_score
from ..core.exceptions import NotFoundError, ValidationError
from .schema_manager import EvaluationSchemaManager

logger = logging.getLogger(__name__)


class GradeLedger:
    """Scores keyed by enrollment and canonical component key.

    Scores are never removed: deactivating a component only hides its
    scores from aggregation.
    """

    def __init__(self, schema: EvaluationSchemaManager):
        self._schema = schema
        self._scores: Dict[str, Dict[str, StudentScore]] = {}  # enrollment_id -> key -> score
        self._split_series: Dict[str, SplitSeries] = {}  # component id -> series

    def record_score(self, enrollment_id: str, component_key: str, value: float) -> StudentScore:
        """Record or overwrite the score of a student for a component."""
        value = validate_score(value)
        component = self._require_component(component_key)
        if component.id in self._split_series:
            raise ValidationError(
                f"Component {component_key!r} is split; grade its items instead",
                error_code="COMPONENT_SPLIT",
                details={'component_key': component_key}
            )
        return self._store(enrollment_id, component_key, value)

    def write_rollup(self, enrollment_id: str, component_key: str, value: float) -> StudentScore:
        """Store the rollup of a completed split series as the component score."""
        value = validate_score(value)
        self._require_component(component_key)
        return self._store(enrollment_id, component_key, value)

    def load(self, scores: Iterable[StudentScore]) -> None:
        """Install persisted scores without re-validating their keys."""
        for score in scores:
            self._scores.setdefault(score.enrollment_id, {})[score.component_key] = score

    def mark_split(self, component_id: str, series: SplitSeries) -> None:
        """Take the component's score from the series rollup from now on."""
        self._split_series[component_id] = series

    def unmark_split(self, component_id: str) -> None:
        self._split_series.pop(component_id, None)

    def get_score(self, enrollment_id: str, component_key: str) -> Optional[StudentScore]:
        return self._scores.get(enrollment_id, {}).get(component_key)

    def scores_for(self, enrollment_id: str) -> List[StudentScore]:
        """All score records of a student, including inactive components."""
        return list(self._scores.get(enrollment_id, {}).values())

    def enrollments(self) -> List[str]:
        return list(self._scores)

    def compute_prorated_average(self, enrollment_id: str) -> float:
        """Weighted sum over the active components that have a score.

        Ungraded components add nothing and their weight is not shared out
        among the graded ones, so the result understates the final grade
        while grading is in progress. A split component counts only while
        the student's series is complete.
        """
        scores = self._scores.get(enrollment_id, {})
        total = 0.0
        for component in self._schema.active_components:
            series = self._split_series.get(component.id)
            if series is not None:
                value = series.rollup_for(enrollment_id)
            else:
                score = scores.get(component.key)
                value = score.value if score is not None else None
            if value is not None:
                total += value * component.weight / 100
        return total

    def _require_component(self, component_key: str) -> EvaluationComponent:
        component = self._schema.find_by_key(component_key)
        if component is None:
            raise NotFoundError(
                f"No evaluation component with key {component_key!r}",
                details={'component_key': component_key}
            )
        return component

    def _store(self, enrollment_id: str, component_key: str, value: float) -> StudentScore:
        previous = self.get_score(enrollment_id, component_key)
        score = StudentScore(
            enrollment_id=enrollment_id,
            component_key=component_key,
            value=value,
            version=previous.version + 1 if previous else 1
        )
        self._scores.setdefault(enrollment_id, {})[component_key] = score
        logger.debug("Score %s/%s = %.2f", enrollment_id, component_key, value)
        return score
