"""
Core entities for the gradebook engine.
"""

import math
import uuid
from abc import ABC
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .enums import (
    SplitState, MIN_SCORE, MAX_SCORE, MIN_WEIGHT, MAX_WEIGHT,
    MIN_SPLIT_ITEMS, MAX_SPLIT_ITEMS
)
from .exceptions import InvalidWeight, InvalidScore, InvalidSplitConfig


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return not math.isnan(value)


def validate_weight(weight: Any) -> float:
    """Return the weight as a float or raise InvalidWeight."""
    if not _is_number(weight) or not MIN_WEIGHT <= weight <= MAX_WEIGHT:
        raise InvalidWeight(weight)
    return float(weight)


def validate_score(value: Any) -> float:
    """Return the score as a float or raise InvalidScore."""
    if not _is_number(value) or not MIN_SCORE <= value <= MAX_SCORE:
        raise InvalidScore(value)
    return float(value)


def validate_total_items(total_items: Any) -> int:
    """Return the item count of a split series or raise InvalidSplitConfig."""
    if (isinstance(total_items, bool) or not isinstance(total_items, int)
            or not MIN_SPLIT_ITEMS <= total_items <= MAX_SPLIT_ITEMS):
        raise InvalidSplitConfig(
            f"A split series needs between {MIN_SPLIT_ITEMS} and {MAX_SPLIT_ITEMS} items, got {total_items!r}",
            details={'total_items': total_items}
        )
    return total_items


class AbstractEntity(ABC):
    """Base abstract entity with universal ID, lifecycle, and versioning."""

    def __init__(self, entity_id: Optional[str] = None):
        self._id = entity_id or str(uuid.uuid4())
        self._created_at = datetime.now(timezone.utc)
        self._updated_at = self._created_at
        self._version = 1

    @property
    def id(self) -> str:
        """Get the entity ID."""
        return self._id

    @property
    def created_at(self) -> datetime:
        """Get creation timestamp."""
        return self._created_at

    @property
    def updated_at(self) -> datetime:
        """Get last update timestamp."""
        return self._updated_at

    @property
    def version(self) -> int:
        """Get current version."""
        return self._version

    def touch(self) -> None:
        """Bump the version after a mutation."""
        self._updated_at = datetime.now(timezone.utc)
        self._version += 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert entity to dictionary."""
        return {
            'id': self._id,
            'created_at': self._created_at.isoformat(),
            'updated_at': self._updated_at.isoformat(),
            'version': self._version,
        }

    def __str__(self) -> str:
        return f"{self.__class__.__name__}(id={self._id})"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(id={self._id}, version={self._version})"


class EvaluationComponent(AbstractEntity):
    """A named, weighted grading criterion of a course."""

    def __init__(self, name: str, key: str, weight: float, order: int,
                 active: bool = True, **kwargs):
        super().__init__(**kwargs)
        self._name = name
        self._key = key
        self._weight = validate_weight(weight)
        self._order = order
        self._active = active

    @property
    def name(self) -> str:
        return self._name

    @property
    def key(self) -> str:
        """Canonical field identifier the scores are stored under."""
        return self._key

    @property
    def weight(self) -> float:
        return self._weight

    @property
    def order(self) -> int:
        return self._order

    @property
    def active(self) -> bool:
        return self._active

    def rename(self, name: str, key: str) -> None:
        """Rename the component and adopt the key derived from the new name."""
        self._name = name
        self._key = key
        self.touch()

    def set_weight(self, weight: float) -> None:
        """Set the weight as a percentage of the final grade."""
        self._weight = validate_weight(weight)
        self.touch()

    def set_active(self, active: bool) -> None:
        """Include or exclude the component from aggregation."""
        self._active = bool(active)
        self.touch()

    def set_order(self, order: int) -> None:
        """Set display order."""
        self._order = order
        self.touch()

    def copy(self) -> 'EvaluationComponent':
        """Return an independent copy with the same ID."""
        return EvaluationComponent.from_dict(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """Convert component to dictionary."""
        base_dict = super().to_dict()
        base_dict.update({
            'name': self._name,
            'key': self._key,
            'weight': self._weight,
            'order': self._order,
            'active': self._active
        })
        return base_dict

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'EvaluationComponent':
        """Rebuild a component from its dictionary form."""
        component = cls(
            name=data['name'],
            key=data['key'],
            weight=data['weight'],
            order=data.get('order', 0),
            active=data.get('active', True),
            entity_id=data.get('id')
        )
        component._version = data.get('version', 1)
        return component


@dataclass(frozen=True)
class NameMapping:
    """Registry entry mapping a normalized free-form name to a canonical key."""
    freeform_name: str
    canonical_key: str
    custom: bool = False


@dataclass(frozen=True)
class StudentScore:
    """Immutable score of one student for one component."""
    enrollment_id: str
    component_key: str
    value: float
    version: int = 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            'enrollment_id': self.enrollment_id,
            'component_key': self.component_key,
            'value': self.value,
            'version': self.version
        }


@dataclass(frozen=True)
class SplitItem:
    """One work item of a split series; score is None until graded."""
    index: int
    score: Optional[float] = None

    @property
    def graded(self) -> bool:
        return self.score is not None


@dataclass(frozen=True)
class SplitGradeEvent:
    """Append-only record of an item being graded or re-graded."""
    series_id: str
    enrollment_id: str
    index: int
    score: float
    recorded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class SplitSeries(AbstractEntity):
    """Decomposition of one component into N independently graded items.

    Items are graded per enrollment, so the grading state and the rollup
    are tracked for each student separately.
    """

    def __init__(self, parent_component_id: str, total_items: int, **kwargs):
        super().__init__(**kwargs)
        self._parent_component_id = parent_component_id
        self._total_items = validate_total_items(total_items)
        self._scores: Dict[str, Dict[int, float]] = {}  # enrollment_id -> index -> score
        self._history: List[SplitGradeEvent] = []

    @property
    def parent_component_id(self) -> str:
        return self._parent_component_id

    @property
    def total_items(self) -> int:
        return self._total_items

    @property
    def history(self) -> List[SplitGradeEvent]:
        return list(self._history)

    def item_weight(self, parent_weight: float) -> float:
        """Effective weight of each item: W / N."""
        return parent_weight / self._total_items

    def enrollments(self) -> List[str]:
        """Enrollments with at least one graded item."""
        return [eid for eid, scores in self._scores.items() if scores]

    def has_grades(self) -> bool:
        return any(self._scores.values())

    def highest_graded_index(self) -> int:
        """Largest item index graded for any student, 0 if none."""
        indices = [index for scores in self._scores.values() for index in scores]
        return max(indices) if indices else 0

    def check_index(self, index: Any) -> int:
        """Return the index or raise InvalidSplitConfig when out of range."""
        if isinstance(index, bool) or not isinstance(index, int) or not 1 <= index <= self._total_items:
            raise InvalidSplitConfig(
                f"Item index must be between 1 and {self._total_items}, got {index!r}",
                details={'index': index, 'total_items': self._total_items}
            )
        return index

    def record(self, enrollment_id: str, index: int, score: float) -> SplitGradeEvent:
        """Grade (or re-grade) one item for a student."""
        self.check_index(index)
        value = validate_score(score)
        self._scores.setdefault(enrollment_id, {})[index] = value
        event = SplitGradeEvent(self._id, enrollment_id, index, value)
        self._history.append(event)
        self.touch()
        return event

    def resize(self, total_items: int) -> None:
        """Change the number of items; never drops a graded item."""
        total_items = validate_total_items(total_items)
        highest = self.highest_graded_index()
        if total_items < highest:
            raise InvalidSplitConfig(
                f"Cannot reduce the series to {total_items} items: item {highest} is already graded",
                details={'total_items': total_items, 'highest_graded_index': highest}
            )
        self._total_items = total_items
        self.touch()

    def items_for(self, enrollment_id: str) -> List[SplitItem]:
        scores = self._scores.get(enrollment_id, {})
        return [SplitItem(index, scores.get(index)) for index in range(1, self._total_items + 1)]

    def state_for(self, enrollment_id: str) -> SplitState:
        graded = len(self._scores.get(enrollment_id, {}))
        if graded == 0:
            return SplitState.PENDING
        if graded < self._total_items:
            return SplitState.PARTIALLY_GRADED
        return SplitState.COMPLETE

    def rollup_for(self, enrollment_id: str) -> Optional[float]:
        """Mean item score once every item is graded, None before that."""
        if self.state_for(enrollment_id) is not SplitState.COMPLETE:
            return None
        scores = self._scores[enrollment_id]
        return sum(scores.values()) / self._total_items

    def to_dict(self) -> Dict[str, Any]:
        """Convert series to dictionary."""
        base_dict = super().to_dict()
        base_dict.update({
            'parent_component_id': self._parent_component_id,
            'total_items': self._total_items,
            'scores': {
                eid: {str(index): score for index, score in scores.items()}
                for eid, scores in self._scores.items()
            },
            'history': [
                {
                    'enrollment_id': e.enrollment_id,
                    'index': e.index,
                    'score': e.score,
                    'recorded_at': e.recorded_at.isoformat()
                }
                for e in self._history
            ]
        })
        return base_dict

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SplitSeries':
        """Rebuild a series from its dictionary form."""
        series = cls(
            parent_component_id=data['parent_component_id'],
            total_items=data['total_items'],
            entity_id=data.get('id')
        )
        for eid, scores in data.get('scores', {}).items():
            series._scores[eid] = {int(index): float(score) for index, score in scores.items()}
        for entry in data.get('history', []):
            series._history.append(SplitGradeEvent(
                series_id=series.id,
                enrollment_id=entry['enrollment_id'],
                index=entry['index'],
                score=entry['score'],
                recorded_at=datetime.fromisoformat(entry['recorded_at'])
            ))
        series._version = data.get('version', 1)
        return series
