"""
Evaluation schema management with the 100% weight invariant.
"""

import logging
from typing import Dict, Iterable, List, Optional

from ..core.entities import EvaluationComponent, validate_weight
from ..core.enums import SchemaState, WEIGHT_TOTAL, WEIGHT_TOLERANCE
from ..core.exceptions import NotFoundError, ValidationError, WeightSumError
from ..core.name_mapper import NameMapper

logger = logging.getLogger(__name__)

# Decimal places kept when comparing the weight sum, enough to drop binary noise
_SUM_PRECISION = 9


class EvaluationSchemaManager:
    """Owns the weighted evaluation components of one course.

    Mutations only touch in-memory state and put the schema back in DRAFT.
    ``validate`` moves a DRAFT schema to VALID, and ``mark_applied`` records
    that the caller persisted a VALID schema.
    """

    def __init__(self, name_mapper: Optional[NameMapper] = None):
        self._name_mapper = name_mapper or NameMapper()
        self._components: Dict[str, EvaluationComponent] = {}
        self._state = SchemaState.DRAFT

    @property
    def name_mapper(self) -> NameMapper:
        return self._name_mapper

    @property
    def state(self) -> SchemaState:
        return self._state

    @property
    def components(self) -> List[EvaluationComponent]:
        """Components in display order."""
        return sorted(self._components.values(), key=lambda c: c.order)

    @property
    def active_components(self) -> List[EvaluationComponent]:
        return [c for c in self.components if c.active]

    def get(self, component_id: str) -> EvaluationComponent:
        component = self._components.get(component_id)
        if component is None:
            raise NotFoundError(
                f"Evaluation component {component_id} not found",
                details={'component_id': component_id}
            )
        return component

    def find_by_key(self, key: str) -> Optional[EvaluationComponent]:
        """Component carrying a canonical key, active ones first."""
        for component in self.active_components + self.components:
            if component.key == key:
                return component
        return None

    def add_component(self, name: str, weight: float) -> EvaluationComponent:
        """Append a new active component at the end of the schema."""
        weight = validate_weight(weight)
        name = self._check_name(name)
        key = self._name_mapper.map_to_field(name)
        self._check_key_free(key, name)
        component = EvaluationComponent(
            name=name,
            key=key,
            weight=weight,
            order=len(self._components) + 1
        )
        self._components[component.id] = component
        self._mark_draft()
        logger.debug("Added component %s (%s, %.2f%%)", component.name, component.key, weight)
        return component

    def remove_component(self, component_id: str) -> EvaluationComponent:
        component = self.get(component_id)
        del self._components[component_id]
        for position, remaining in enumerate(self.components, start=1):
            if remaining.order != position:
                remaining.set_order(position)
        self._mark_draft()
        logger.debug("Removed component %s", component.name)
        return component

    def rename_component(self, component_id: str, name: str) -> EvaluationComponent:
        component = self.get(component_id)
        name = self._check_name(name)
        key = self._name_mapper.map_to_field(name)
        if component.active:
            self._check_key_free(key, name, exclude=component)
        component.rename(name, key)
        self._mark_draft()
        return component

    def reorder(self, component_ids: Iterable[str]) -> None:
        """Set the display order; the IDs must be a permutation of the schema."""
        ids = list(component_ids)
        if len(ids) != len(set(ids)) or set(ids) != set(self._components):
            raise ValidationError(
                "Reorder requires every component ID exactly once",
                error_code="INVALID_ORDER",
                details={'component_ids': ids}
            )
        for position, component_id in enumerate(ids, start=1):
            self._components[component_id].set_order(position)
        self._mark_draft()

    def set_active(self, component_id: str, active: bool) -> EvaluationComponent:
        component = self.get(component_id)
        if active and not component.active:
            self._check_key_free(component.key, component.name, exclude=component)
        component.set_active(active)
        self._mark_draft()
        return component

    def set_weight(self, component_id: str, weight: float) -> EvaluationComponent:
        weight = validate_weight(weight)
        component = self.get(component_id)
        component.set_weight(weight)
        self._mark_draft()
        return component

    def active_weight_sum(self) -> float:
        return sum(c.weight for c in self._components.values() if c.active)

    def validate(self) -> float:
        """Check the weight invariant and return the active weight sum.

        Raises WeightSumError when the active weights are more than 0.01
        away from 100.
        """
        total = self.active_weight_sum()
        if round(abs(total - WEIGHT_TOTAL), _SUM_PRECISION) > WEIGHT_TOLERANCE:
            self._state = SchemaState.DRAFT
            raise WeightSumError(total)
        if self._state is SchemaState.DRAFT:
            self._state = SchemaState.VALID
        return total

    def is_valid(self) -> bool:
        try:
            self.validate()
        except WeightSumError:
            return False
        return True

    def mark_applied(self) -> None:
        """Record that the validated schema was persisted."""
        if self._state is SchemaState.DRAFT:
            raise ValidationError(
                "Only a validated schema can be applied",
                error_code="SCHEMA_NOT_VALIDATED"
            )
        self._state = SchemaState.APPLIED
        logger.info("Evaluation schema applied (%d components)", len(self._components))

    def load(self, components: Iterable[EvaluationComponent]) -> None:
        """Install a persisted schema; it counts as applied once it validates."""
        self._components = {c.id: c for c in components}
        self._state = SchemaState.DRAFT
        if self._components and self.is_valid():
            self._state = SchemaState.APPLIED

    def restore(self, components: Iterable[EvaluationComponent], state: SchemaState) -> None:
        """Put back a snapshot taken earlier, together with its state."""
        self._components = {c.id: c for c in components}
        self._state = state

    def key_collisions(self) -> Dict[str, List[str]]:
        """Canonical keys shared by more than one component name."""
        return self._name_mapper.find_collisions(c.name for c in self.components)

    def snapshot(self) -> List[EvaluationComponent]:
        """Independent copies of the components, for handing to persistence."""
        return [c.copy() for c in self.components]

    def _check_name(self, name: str) -> str:
        if not isinstance(name, str) or not name.strip():
            raise ValidationError("Component name must not be empty", error_code="INVALID_NAME")
        return name.strip()

    def _check_key_free(self, key: str, name: str,
                        exclude: Optional[EvaluationComponent] = None) -> None:
        for other in self.active_components:
            if other is not exclude and other.key == key:
                raise ValidationError(
                    f"{name!r} maps to the field {key!r} already used by {other.name!r}",
                    error_code="DUPLICATE_KEY",
                    details={'key': key, 'name': name, 'existing': other.name}
                )

    def _mark_draft(self) -> None:
        self._state = SchemaState.DRAFT
