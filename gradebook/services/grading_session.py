"""
Per-course grading session: the entry point used by the presentation layer.

The session wires the schema manager, ledger, split coordinator and
aggregation engine of one course to the persistence collaborator. Edits are
kept locally in a pending set and flushed one student at a time; there is no
transaction across students.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..core.entities import StudentScore, SplitSeries, validate_score
from ..core.enums import SchemaState, SplitState, SaveStatus, PASSING_GRADE
from ..core.exceptions import (
    ConcurrencyError, NotFoundError, PersistenceError, SchemaNotAppliedError,
    SchemaSaveError, StudentSaveError
)
from ..core.interfaces import PersistenceAPI, CourseEnrollmentService
from ..core.name_mapper import NameMapper
from .aggregation_engine import AggregationEngine, ComponentContribution, StudentStanding
from .grade_ledger import GradeLedger
from .schema_manager import EvaluationSchemaManager
from .split_coordinator import SplitEvaluationCoordinator

logger = logging.getLogger(__name__)


@dataclass
class SaveOutcome:
    """Result of flushing the pending edits of one student."""
    enrollment_id: str
    status: SaveStatus
    saved_keys: List[str] = field(default_factory=list)
    error: Optional[StudentSaveError] = None

    @property
    def success(self) -> bool:
        return self.status is not SaveStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enrollment_id': self.enrollment_id,
            'status': self.status.value,
            'saved_keys': list(self.saved_keys),
            'error': self.error.message if self.error else None
        }


@dataclass
class BatchSaveReport:
    """Per-student outcomes of a save-all run."""
    outcomes: List[SaveOutcome] = field(default_factory=list)

    @property
    def saved(self) -> List[SaveOutcome]:
        return [o for o in self.outcomes if o.status is SaveStatus.SAVED]

    @property
    def failed(self) -> List[SaveOutcome]:
        return [o for o in self.outcomes if o.status is SaveStatus.FAILED]

    @property
    def all_saved(self) -> bool:
        return not self.failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            'saved': len(self.saved),
            'failed': len(self.failed),
            'outcomes': [o.to_dict() for o in self.outcomes]
        }


class GradingSession:
    """Grading state of one course, loaded from and flushed to persistence."""

    def __init__(self, course_id: str, persistence: PersistenceAPI,
                 enrollment_service: Optional[CourseEnrollmentService] = None,
                 name_mapper: Optional[NameMapper] = None,
                 passing_grade: float = PASSING_GRADE):
        self._course_id = course_id
        self._persistence = persistence
        self._enrollment_service = enrollment_service
        self.schema = EvaluationSchemaManager(name_mapper)
        self.ledger = GradeLedger(self.schema)
        self.coordinator = SplitEvaluationCoordinator(self.schema, self.ledger)
        self.engine = AggregationEngine(self.schema, self.ledger, self.coordinator, passing_grade)
        self._pending: Dict[str, Dict[str, float]] = {}  # enrollment_id -> key -> value
        self._schema_version = 0

    @property
    def course_id(self) -> str:
        return self._course_id

    @property
    def schema_version(self) -> int:
        """Version of the schema last loaded or saved."""
        return self._schema_version

    def load(self) -> None:
        """Replace local state with what persistence holds for the course."""
        self.schema.load(self._persistence.get_schema(self._course_id))
        self._schema_version = self._persistence.get_schema_version(self._course_id)
        self.ledger = GradeLedger(self.schema)
        self.ledger.load(self._persistence.get_scores(self._course_id))
        self.coordinator = SplitEvaluationCoordinator(self.schema, self.ledger)
        for component in self.schema.components:
            series = self._persistence.get_split_series(component.id)
            if series is not None:
                self.coordinator.adopt(series)
        self.engine = AggregationEngine(self.schema, self.ledger, self.coordinator,
                                        self.engine.passing_grade)
        self._pending.clear()
        logger.info("Loaded course %s: %d components, %d graded students",
                    self._course_id, len(self.schema.components), len(self.ledger.enrollments()))

    # Schema

    def validate(self) -> float:
        return self.schema.validate()

    def apply_schema(self, expected_version: Optional[int] = None) -> int:
        """Validate and persist the schema; grading is blocked until this succeeds.

        Validation runs before any external call. Pass expected_version to
        reject the save when someone else saved the schema in between.
        """
        self.schema.validate()
        for key, names in self.schema.key_collisions().items():
            logger.warning("Components %s share the field key %r", names, key)
        try:
            version = self._persistence.save_schema(self._course_id, self.schema.snapshot(), expected_version)
        except PersistenceError as e:
            raise SchemaSaveError(
                f"Could not save the evaluation schema of course {self._course_id}: {e.message}",
                error_code="SCHEMA_SAVE",
                details={'course_id': self._course_id}
            ) from e
        self.schema.mark_applied()
        self._schema_version = version
        return version

    # Split series

    def enable_split(self, component_id: str, total_items: int) -> SplitSeries:
        """Split a component; the series is installed only once it is stored."""
        self._require_applied()
        series = self.coordinator.new_series(component_id, total_items)
        self._persistence.save_split_series(series)
        self.coordinator.adopt(series)
        return series

    def resize_split(self, component_id: str, total_items: int) -> SplitSeries:
        self._require_applied()
        resized = SplitSeries.from_dict(self.coordinator.series_for(component_id).to_dict())
        resized.resize(total_items)
        self._persistence.save_split_series(resized)
        series = self.coordinator.resize(component_id, total_items)
        self._stage_rollups(series)
        return series

    def grade_split_item(self, component_id: str, enrollment_id: str, index: int, score: float) -> SplitState:
        """Grade one item of a split series; local state changes only after it is stored."""
        self._require_applied()
        self._require_enrollment(enrollment_id)
        series = self.coordinator.series_for(component_id)
        series.check_index(index)
        value = validate_score(score)
        try:
            self._persistence.save_split_item(series.id, enrollment_id, index, value)
        except PersistenceError as e:
            raise StudentSaveError(enrollment_id, f"Could not save item {index}: {e.message}") from e
        state = self.coordinator.grade_item(component_id, enrollment_id, index, value)
        if state is SplitState.COMPLETE:
            self._stage_rollups(series, [enrollment_id])
        return state

    # Scores

    def record_score(self, enrollment_id: str, component_key: str, value: float) -> StudentScore:
        """Record a score locally and add it to the pending edits."""
        self._require_applied()
        self._require_enrollment(enrollment_id)
        score = self.ledger.record_score(enrollment_id, component_key, value)
        self._pending.setdefault(enrollment_id, {})[component_key] = score.value
        return score

    def pending_edits(self) -> Dict[str, Dict[str, float]]:
        return {eid: dict(edits) for eid, edits in self._pending.items()}

    def has_pending_edits(self) -> bool:
        return any(self._pending.values())

    def save_student(self, enrollment_id: str) -> SaveOutcome:
        """Flush one student's pending edits; failed keys stay pending."""
        edits = self._pending.get(enrollment_id)
        if not edits:
            return SaveOutcome(enrollment_id, SaveStatus.SKIPPED)

        saved_keys = []
        for key, value in list(edits.items()):
            try:
                self._persistence.save_score(self._course_id, enrollment_id, key, value)
            except (PersistenceError, ConcurrencyError) as e:
                logger.warning("Saving scores of %s failed: %s", enrollment_id, e.message)
                return SaveOutcome(
                    enrollment_id, SaveStatus.FAILED, saved_keys,
                    StudentSaveError(enrollment_id, e.message)
                )
            del edits[key]
            saved_keys.append(key)

        del self._pending[enrollment_id]
        return SaveOutcome(enrollment_id, SaveStatus.SAVED, saved_keys)

    def save_all(self) -> BatchSaveReport:
        """Flush every student independently; a failure never undoes other saves."""
        self._require_applied()
        report = BatchSaveReport()
        for enrollment_id in list(self._pending):
            if self._pending.get(enrollment_id):
                report.outcomes.append(self.save_student(enrollment_id))
        logger.info("Saved scores of %d students, %d failed", len(report.saved), len(report.failed))
        return report

    # Averages

    def compute_prorated_average(self, enrollment_id: str) -> float:
        self._require_enrollment(enrollment_id)
        return self.ledger.compute_prorated_average(enrollment_id)

    def compute_final_average(self, enrollment_id: str) -> int:
        self._require_enrollment(enrollment_id)
        return self.engine.compute_final_average(enrollment_id)

    def breakdown(self, enrollment_id: str) -> List[ComponentContribution]:
        self._require_enrollment(enrollment_id)
        return self.engine.breakdown(enrollment_id)

    def standing(self, enrollment_id: str) -> StudentStanding:
        self._require_enrollment(enrollment_id)
        return self.engine.standing(enrollment_id)

    def roster_report(self, period_id: Optional[str] = None) -> List[StudentStanding]:
        """Standing of every active enrollment, or of every graded one without a roster."""
        if self._enrollment_service is not None:
            enrollment_ids = self._enrollment_service.active_enrollments(self._course_id, period_id)
        else:
            enrollment_ids = self.ledger.enrollments()
        return self.engine.standings(enrollment_ids)

    def _stage_rollups(self, series: SplitSeries, enrollment_ids: Optional[List[str]] = None) -> None:
        component = self.schema.get(series.parent_component_id)
        for enrollment_id in enrollment_ids or series.enrollments():
            rollup = series.rollup_for(enrollment_id)
            if rollup is not None:
                self._pending.setdefault(enrollment_id, {})[component.key] = rollup
            elif enrollment_id in self._pending:
                self._pending[enrollment_id].pop(component.key, None)

    def _require_applied(self) -> None:
        if self.schema.state is not SchemaState.APPLIED:
            raise SchemaNotAppliedError(
                "The evaluation schema must be validated and saved before grading",
                error_code="SCHEMA_NOT_APPLIED",
                details={'course_id': self._course_id, 'state': self.schema.state.value}
            )

    def _require_enrollment(self, enrollment_id: str) -> None:
        if self._enrollment_service is None:
            return
        if enrollment_id not in self._enrollment_service.active_enrollments(self._course_id):
            raise NotFoundError(
                f"Enrollment {enrollment_id} is not active in course {self._course_id}",
                details={'enrollment_id': enrollment_id, 'course_id': self._course_id}
            )
