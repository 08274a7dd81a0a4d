import math

import pytest

from gradebook.core.entities import EvaluationComponent
from gradebook.core.enums import SchemaState
from gradebook.core.exceptions import InvalidWeight, NotFoundError, ValidationError, WeightSumError


class TestComponentEditing:
    """In-memory schema mutations"""

    def test_add_component_derives_key_and_order(self, schema):
        first = schema.add_component("Parcial 1", 40)
        second = schema.add_component("Examen Oral", 60)

        assert first.key == "parcial1"
        assert second.key == "examenOral"
        assert [c.order for c in schema.components] == [1, 2]
        assert schema.state is SchemaState.DRAFT

    @pytest.mark.parametrize("weight", [-1, 100.5, "30", None, math.nan, True])
    def test_add_component_rejects_invalid_weight(self, schema, weight):
        with pytest.raises(InvalidWeight):
            schema.add_component("Parcial 1", weight)
        assert schema.components == []

    def test_add_component_rejects_blank_name(self, schema):
        with pytest.raises(ValidationError):
            schema.add_component("  ", 10)

    def test_remove_component_renumbers(self, course_schema):
        second = course_schema.components[1]
        course_schema.remove_component(second.id)

        assert [c.name for c in course_schema.components] == ["Parcial 1", "Trabajos", "Examen Final"]
        assert [c.order for c in course_schema.components] == [1, 2, 3]

    def test_unknown_component_raises_not_found(self, schema):
        with pytest.raises(NotFoundError):
            schema.remove_component("missing")
        with pytest.raises(NotFoundError):
            schema.set_weight("missing", 10)

    def test_rename_recomputes_key(self, course_schema):
        component = course_schema.components[0]
        course_schema.rename_component(component.id, "Medio Curso")

        assert component.key == "medioCurso"
        assert course_schema.find_by_key("medioCurso") is component

    def test_duplicate_active_key_is_rejected(self, schema):
        schema.add_component("Práctica", 50)
        with pytest.raises(ValidationError) as exc_info:
            schema.add_component("Prácticas", 50)

        assert exc_info.value.error_code == "DUPLICATE_KEY"
        assert [c.name for c in schema.components] == ["Práctica"]

    def test_rename_onto_an_active_key_is_rejected(self, course_schema):
        final = course_schema.find_by_key("examenFinal")
        with pytest.raises(ValidationError) as exc_info:
            course_schema.rename_component(final.id, "Parcial 1")

        assert exc_info.value.error_code == "DUPLICATE_KEY"
        assert final.name == "Examen Final"
        assert course_schema.find_by_key("parcial1").name == "Parcial 1"

    def test_reorder_requires_a_permutation(self, course_schema):
        ids = [c.id for c in course_schema.components]
        course_schema.reorder(list(reversed(ids)))
        assert [c.id for c in course_schema.components] == list(reversed(ids))

        with pytest.raises(ValidationError):
            course_schema.reorder(ids[:-1])
        with pytest.raises(ValidationError):
            course_schema.reorder(ids + [ids[0]])

    def test_set_weight_rejects_out_of_range(self, course_schema):
        component = course_schema.components[0]
        with pytest.raises(InvalidWeight):
            course_schema.set_weight(component.id, 120)
        assert component.weight == 30


class TestValidation:
    """The 100% weight invariant"""

    def test_exact_hundred_is_valid(self, schema):
        schema.add_component("A", 60)
        schema.add_component("B", 40)

        assert schema.validate() == pytest.approx(100)
        assert schema.state is SchemaState.VALID

    @pytest.mark.parametrize("second_weight", [39.99, 40.01])
    def test_within_tolerance_is_valid(self, schema, second_weight):
        schema.add_component("A", 60)
        schema.add_component("B", second_weight)
        assert schema.is_valid()

    def test_tolerance_is_not_widened_by_float_error(self, schema):
        schema.add_component("A", 60)
        schema.add_component("B", 40.010000002)

        with pytest.raises(WeightSumError):
            schema.validate()

    @pytest.mark.parametrize("second_weight", [39.98, 40.02, 30])
    def test_outside_tolerance_raises_with_actual_sum(self, schema, second_weight):
        schema.add_component("A", 60)
        schema.add_component("B", second_weight)

        with pytest.raises(WeightSumError) as exc_info:
            schema.validate()
        assert exc_info.value.actual_sum == pytest.approx(60 + second_weight)
        assert exc_info.value.details['actual_sum'] == pytest.approx(60 + second_weight)
        assert schema.state is SchemaState.DRAFT

    def test_inactive_components_do_not_count(self, schema):
        schema.add_component("A", 60)
        schema.add_component("B", 40)
        extra = schema.add_component("C", 20)
        schema.set_active(extra.id, False)

        assert schema.is_valid()
        schema.set_active(extra.id, True)
        assert not schema.is_valid()

    def test_empty_schema_is_invalid(self, schema):
        with pytest.raises(WeightSumError):
            schema.validate()

    def test_any_mutation_returns_to_draft(self, course_schema):
        assert course_schema.state is SchemaState.VALID
        course_schema.set_weight(course_schema.components[0].id, 30)
        assert course_schema.state is SchemaState.DRAFT


class TestLifecycle:
    """Draft, Valid and Applied states"""

    def test_mark_applied_requires_validation(self, schema):
        schema.add_component("A", 100)
        with pytest.raises(ValidationError):
            schema.mark_applied()

        schema.validate()
        schema.mark_applied()
        assert schema.state is SchemaState.APPLIED

    def test_load_installs_an_applied_schema(self, schema):
        components = [
            EvaluationComponent("Parcial 1", "parcial1", 50, 1),
            EvaluationComponent("Examen Final", "examenFinal", 50, 2),
        ]
        schema.load(components)

        assert schema.state is SchemaState.APPLIED
        assert [c.key for c in schema.active_components] == ["parcial1", "examenFinal"]

    def test_load_keeps_an_invalid_schema_in_draft(self, schema):
        schema.load([EvaluationComponent("Parcial 1", "parcial1", 50, 1)])
        assert schema.state is SchemaState.DRAFT

    def test_snapshot_is_independent(self, course_schema):
        snapshot = course_schema.snapshot()
        snapshot[0].set_weight(90)

        assert course_schema.components[0].weight == 30
        assert snapshot[0].id == course_schema.components[0].id

    def test_key_collisions(self, schema):
        schema.add_component("Parcial 1", 50)
        other = schema.add_component("Examen", 50)
        schema.set_active(other.id, False)
        schema.rename_component(other.id, "parcial1")

        assert schema.key_collisions() == {"parcial1": ["Parcial 1", "parcial1"]}
        with pytest.raises(ValidationError) as exc_info:
            schema.set_active(other.id, True)
        assert exc_info.value.error_code == "DUPLICATE_KEY"
        assert not other.active

    def test_restore_puts_back_components_and_state(self, course_schema):
        previous, state = course_schema.snapshot(), course_schema.state
        course_schema.remove_component(course_schema.components[0].id)
        course_schema.add_component("Medio Curso", 10)

        course_schema.restore(previous, state)

        assert [c.key for c in course_schema.components] == ["parcial1", "practicas", "trabajos", "examenFinal"]
        assert course_schema.state is SchemaState.VALID
