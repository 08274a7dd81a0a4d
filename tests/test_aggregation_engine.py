import pytest

from gradebook.core.enums import PassStatus, SplitState
from gradebook.services import (
    EvaluationSchemaManager, GradeLedger, SplitEvaluationCoordinator, AggregationEngine, round_half_up
)


def build(*components):
    """Engine over a schema made of (name, weight) pairs"""
    schema = EvaluationSchemaManager()
    for name, weight in components:
        schema.add_component(name, weight)
    ledger = GradeLedger(schema)
    coordinator = SplitEvaluationCoordinator(schema, ledger)
    return schema, ledger, coordinator, AggregationEngine(schema, ledger, coordinator)


class TestRoundHalfUp:
    """Rounding of the reported grade"""

    @pytest.mark.parametrize("value, expected", [
        (12.5, 13), (10.5, 11), (12.49, 12), (0.0, 0), (19.999, 20), (3.2, 3),
    ])
    def test_rounding(self, value, expected):
        assert round_half_up(value) == expected

    def test_binary_noise_below_half(self):
        assert round_half_up(0.1 * 3 + 12.2) == 13


class TestFinalAverage:
    """Weighted final average over active components"""

    def test_two_component_example(self):
        _, ledger, _, engine = build(("A", 60), ("B", 40))
        ledger.record_score("enr-1", "a", 15)
        ledger.record_score("enr-1", "b", 10)

        assert engine.compute_raw_final_average("enr-1") == pytest.approx(13)
        assert engine.compute_final_average("enr-1") == 13

    def test_missing_scores_count_as_zero(self):
        _, ledger, _, engine = build(("A", 60), ("B", 40))
        ledger.record_score("enr-1", "a", 15)
        assert engine.compute_final_average("enr-1") == 9

    def test_halves_round_up(self):
        _, ledger, _, engine = build(("A", 50), ("B", 50))
        ledger.record_score("enr-1", "a", 13)
        ledger.record_score("enr-1", "b", 12)
        assert engine.compute_final_average("enr-1") == 13

    def test_is_deterministic(self, engine, ledger):
        ledger.record_score("enr-1", "parcial1", 17)
        ledger.record_score("enr-1", "practicas", 11)
        assert engine.compute_final_average("enr-1") == engine.compute_final_average("enr-1")

    def test_deactivated_component_is_excluded(self):
        schema, ledger, _, engine = build(("A", 60), ("B", 40), ("C", 20))
        ledger.record_score("enr-1", "a", 15)
        ledger.record_score("enr-1", "b", 10)
        ledger.record_score("enr-1", "c", 20)
        schema.set_active(schema.find_by_key("c").id, False)

        assert engine.compute_final_average("enr-1") == 13
        assert [c.key for c in engine.breakdown("enr-1")] == ["a", "b"]
        assert ledger.get_score("enr-1", "c").value == 20


class TestSplitAggregation:
    """Split components feed their rollup once complete"""

    def test_complete_split_contributes_rollup(self):
        schema, _, coordinator, engine = build(("Trabajos", 20), ("Examen Final", 80))
        trabajos = schema.find_by_key("trabajos")
        coordinator.enable_split(trabajos.id, 2)
        coordinator.grade_item(trabajos.id, "enr-1", 1, 18)
        coordinator.grade_item(trabajos.id, "enr-1", 2, 14)

        contribution = engine.breakdown("enr-1")[0]
        assert contribution.score == pytest.approx(16)
        assert contribution.contribution == pytest.approx(3.2)
        assert contribution.split_state is SplitState.COMPLETE
        assert engine.compute_final_average("enr-1") == 3

    def test_incomplete_split_contributes_zero(self):
        schema, ledger, coordinator, engine = build(("Trabajos", 20), ("Examen Final", 80))
        trabajos = schema.find_by_key("trabajos")
        coordinator.enable_split(trabajos.id, 3)
        coordinator.grade_item(trabajos.id, "enr-1", 1, 20)
        ledger.record_score("enr-1", "examenFinal", 10)

        contribution = engine.breakdown("enr-1")[0]
        assert contribution.score is None
        assert contribution.contribution == 0
        assert contribution.split_state is SplitState.PARTIALLY_GRADED
        assert engine.compute_final_average("enr-1") == 8

    def test_regrade_after_complete_changes_final(self):
        schema, _, coordinator, engine = build(("Trabajos", 100))
        trabajos = schema.find_by_key("trabajos")
        coordinator.enable_split(trabajos.id, 2)
        coordinator.grade_item(trabajos.id, "enr-1", 1, 18)
        coordinator.grade_item(trabajos.id, "enr-1", 2, 14)
        assert engine.compute_final_average("enr-1") == 16

        coordinator.grade_item(trabajos.id, "enr-1", 2, 20)
        assert engine.compute_final_average("enr-1") == 19

    def test_growing_a_complete_series_drops_its_contribution(self):
        schema, ledger, coordinator, engine = build(("Trabajos", 100))
        trabajos = schema.find_by_key("trabajos")
        coordinator.enable_split(trabajos.id, 2)
        coordinator.grade_item(trabajos.id, "enr-1", 1, 18)
        coordinator.grade_item(trabajos.id, "enr-1", 2, 14)

        coordinator.resize(trabajos.id, 3)
        assert coordinator.state(trabajos.id, "enr-1") is SplitState.PARTIALLY_GRADED
        assert engine.compute_final_average("enr-1") == 0
        assert ledger.compute_prorated_average("enr-1") == 0


class TestStanding:
    """Pass/fail standing"""

    def test_passing_threshold(self):
        _, ledger, _, engine = build(("A", 100))
        ledger.record_score("enr-1", "a", 10.5)
        ledger.record_score("enr-2", "a", 10.4)

        assert engine.is_passing("enr-1")
        assert not engine.is_passing("enr-2")

        standings = engine.standings(["enr-1", "enr-2"])
        assert [s.status for s in standings] == [PassStatus.PASSED, PassStatus.FAILED]
        assert standings[0].to_dict() == {
            'enrollment_id': "enr-1",
            'prorated_average': 10.5,
            'final_average': 11,
            'status': "passed",
        }

    def test_custom_passing_grade(self):
        schema = EvaluationSchemaManager()
        schema.add_component("A", 100)
        ledger = GradeLedger(schema)
        engine = AggregationEngine(schema, ledger, SplitEvaluationCoordinator(schema, ledger), passing_grade=14)
        ledger.record_score("enr-1", "a", 13)

        assert engine.passing_grade == 14
        assert not engine.is_passing("enr-1")
