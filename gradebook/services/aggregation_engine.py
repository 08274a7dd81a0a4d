"""
Final weighted average over the schema, the ledger and the split series.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional

from ..core.enums import SplitState, PassStatus, PASSING_GRADE
from .grade_ledger import GradeLedger
from .schema_manager import EvaluationSchemaManager
from .split_coordinator import SplitEvaluationCoordinator


@dataclass
class ComponentContribution:
    """How one active component feeds a student's final average."""
    component_id: str
    name: str
    key: str
    weight: float
    score: Optional[float]
    contribution: float
    split_state: Optional[SplitState] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'component_id': self.component_id,
            'name': self.name,
            'key': self.key,
            'weight': self.weight,
            'score': self.score,
            'contribution': self.contribution,
            'split_state': self.split_state.value if self.split_state else None
        }


@dataclass
class StudentStanding:
    """Averages and pass/fail standing of one enrollment."""
    enrollment_id: str
    prorated_average: float
    final_average: int
    status: PassStatus

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enrollment_id': self.enrollment_id,
            'prorated_average': self.prorated_average,
            'final_average': self.final_average,
            'status': self.status.value
        }


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up, as grades are reported."""
    # Trim binary noise first so 12.4999999999 from a true 12.5 still rounds up
    return int(Decimal(f"{value:.6f}").quantize(Decimal('1'), rounding=ROUND_HALF_UP))


class AggregationEngine:
    """Computes final averages; holds no state of its own."""

    def __init__(self, schema: EvaluationSchemaManager, ledger: GradeLedger,
                 coordinator: SplitEvaluationCoordinator, passing_grade: float = PASSING_GRADE):
        self._schema = schema
        self._ledger = ledger
        self._coordinator = coordinator
        self._passing_grade = passing_grade

    @property
    def passing_grade(self) -> float:
        return self._passing_grade

    def breakdown(self, enrollment_id: str) -> List[ComponentContribution]:
        """Per-component score and weighted contribution.

        A split component contributes its rollup once the series is COMPLETE
        and 0 before that; any other component contributes its ledger score,
        or 0 when none was recorded.
        """
        contributions = []
        for component in self._schema.active_components:
            split_state = None
            if self._coordinator.is_split(component.id):
                split_state = self._coordinator.state(component.id, enrollment_id)
                score = self._coordinator.rollup(component.id, enrollment_id)
            else:
                recorded = self._ledger.get_score(enrollment_id, component.key)
                score = recorded.value if recorded else None
            contributions.append(ComponentContribution(
                component_id=component.id,
                name=component.name,
                key=component.key,
                weight=component.weight,
                score=score,
                contribution=(score or 0.0) * component.weight / 100,
                split_state=split_state
            ))
        return contributions

    def compute_raw_final_average(self, enrollment_id: str) -> float:
        return sum(c.contribution for c in self.breakdown(enrollment_id))

    def compute_final_average(self, enrollment_id: str) -> int:
        """Final weighted average rounded to the reported integer grade."""
        return round_half_up(self.compute_raw_final_average(enrollment_id))

    def is_passing(self, enrollment_id: str) -> bool:
        return self.compute_final_average(enrollment_id) >= self._passing_grade

    def standing(self, enrollment_id: str) -> StudentStanding:
        final_average = self.compute_final_average(enrollment_id)
        return StudentStanding(
            enrollment_id=enrollment_id,
            prorated_average=self._ledger.compute_prorated_average(enrollment_id),
            final_average=final_average,
            status=PassStatus.PASSED if final_average >= self._passing_grade else PassStatus.FAILED
        )

    def standings(self, enrollment_ids: Iterable[str]) -> List[StudentStanding]:
        return [self.standing(enrollment_id) for enrollment_id in enrollment_ids]
