"""
Split series: one evaluation component graded as N separate work items.
"""

import logging
from typing import Dict, List, Optional

from ..core.entities import SplitSeries, SplitItem, SplitGradeEvent, validate_total_items
from ..core.enums import SplitState
from ..core.exceptions import InvalidSplitConfig, NotFoundError
from .grade_ledger import GradeLedger
from .schema_manager import EvaluationSchemaManager

logger = logging.getLogger(__name__)


class SplitEvaluationCoordinator:
    """Manages split series and rolls their item scores into the ledger.

    Each item of a series over a component of weight W weighs W / N. A
    student's series is PENDING with no graded items, PARTIALLY_GRADED with
    some and COMPLETE with all N; only a COMPLETE series writes its rollup
    (the mean item score) to the ledger, and every later re-grade rewrites it.
    """

    def __init__(self, schema: EvaluationSchemaManager, ledger: GradeLedger):
        self._schema = schema
        self._ledger = ledger
        self._series: Dict[str, SplitSeries] = {}  # parent component id -> series

    def new_series(self, component_id: str, total_items: int) -> SplitSeries:
        """Check that a component can be split and build its series without installing it."""
        component = self._schema.get(component_id)
        total_items = validate_total_items(total_items)
        if component_id in self._series:
            raise InvalidSplitConfig(
                f"Component {component.name!r} is already split",
                details={'component_id': component_id}
            )
        return SplitSeries(parent_component_id=component_id, total_items=total_items)

    def enable_split(self, component_id: str, total_items: int) -> SplitSeries:
        """Divide a component into total_items independently graded items."""
        series = self.new_series(component_id, total_items)
        self.adopt(series)
        component = self._schema.get(component_id)
        logger.info("Split %s into %d items of %.2f%% each",
                    component.name, total_items, series.item_weight(component.weight))
        return series

    def adopt(self, series: SplitSeries) -> None:
        """Install a persisted series for a component of the schema."""
        component = self._schema.get(series.parent_component_id)
        self._series[component.id] = series
        self._ledger.mark_split(component.id, series)

    def disable_split(self, component_id: str) -> SplitSeries:
        """Undo a split; refused once any item has a score."""
        series = self.series_for(component_id)
        if series.has_grades():
            raise InvalidSplitConfig(
                "Cannot remove a split series that already has graded items",
                details={'component_id': component_id}
            )
        del self._series[component_id]
        self._ledger.unmark_split(component_id)
        return series

    def resize(self, component_id: str, total_items: int) -> SplitSeries:
        """Change the number of items; cannot drop below a graded index."""
        series = self.series_for(component_id)
        series.resize(total_items)
        for enrollment_id in series.enrollments():
            self._sync_rollup(series, enrollment_id)
        return series

    def grade_item(self, component_id: str, enrollment_id: str, index: int, score: float) -> SplitState:
        """Grade or re-grade one item and return the student's series state."""
        series = self.series_for(component_id)
        series.record(enrollment_id, index, score)
        return self._sync_rollup(series, enrollment_id)

    def is_split(self, component_id: str) -> bool:
        return component_id in self._series

    def series_for(self, component_id: str) -> SplitSeries:
        series = self._series.get(component_id)
        if series is None:
            raise NotFoundError(
                f"Component {component_id} has no split series",
                details={'component_id': component_id}
            )
        return series

    def all_series(self) -> List[SplitSeries]:
        return list(self._series.values())

    def state(self, component_id: str, enrollment_id: str) -> SplitState:
        return self.series_for(component_id).state_for(enrollment_id)

    def rollup(self, component_id: str, enrollment_id: str) -> Optional[float]:
        """Rollup score of a COMPLETE series, None otherwise."""
        return self.series_for(component_id).rollup_for(enrollment_id)

    def items(self, component_id: str, enrollment_id: str) -> List[SplitItem]:
        return self.series_for(component_id).items_for(enrollment_id)

    def item_weight(self, component_id: str) -> float:
        """Effective weight of each item, W / N."""
        component = self._schema.get(component_id)
        return self.series_for(component_id).item_weight(component.weight)

    def history(self, component_id: str) -> List[SplitGradeEvent]:
        return self.series_for(component_id).history

    def _sync_rollup(self, series: SplitSeries, enrollment_id: str) -> SplitState:
        state = series.state_for(enrollment_id)
        if state is SplitState.COMPLETE:
            component = self._schema.get(series.parent_component_id)
            self._ledger.write_rollup(enrollment_id, component.key, series.rollup_for(enrollment_id))
        return state
