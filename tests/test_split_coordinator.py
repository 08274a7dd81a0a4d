import pytest

from gradebook.core.enums import SplitState
from gradebook.core.exceptions import InvalidScore, InvalidSplitConfig, NotFoundError


@pytest.fixture
def trabajos(course_schema):
    return course_schema.find_by_key("trabajos")


class TestSplitConfiguration:
    """Enabling, resizing and removing split series"""

    @pytest.mark.parametrize("total_items", [0, 1, 11, 2.5, "4"])
    def test_enable_rejects_invalid_item_count(self, coordinator, trabajos, total_items):
        with pytest.raises(InvalidSplitConfig):
            coordinator.enable_split(trabajos.id, total_items)
        assert not coordinator.is_split(trabajos.id)

    def test_enable_split_distributes_weight(self, coordinator, trabajos):
        series = coordinator.enable_split(trabajos.id, 4)

        assert series.total_items == 4
        assert coordinator.item_weight(trabajos.id) == pytest.approx(5)
        assert coordinator.state(trabajos.id, "enr-1") is SplitState.PENDING

    def test_enable_twice_is_rejected(self, coordinator, trabajos):
        coordinator.enable_split(trabajos.id, 2)
        with pytest.raises(InvalidSplitConfig):
            coordinator.enable_split(trabajos.id, 3)

    def test_enable_unknown_component(self, coordinator):
        with pytest.raises(NotFoundError):
            coordinator.enable_split("missing", 2)

    def test_resize_below_graded_index_is_rejected(self, coordinator, trabajos):
        coordinator.enable_split(trabajos.id, 4)
        coordinator.grade_item(trabajos.id, "enr-1", 3, 12)

        with pytest.raises(InvalidSplitConfig):
            coordinator.resize(trabajos.id, 2)
        assert coordinator.series_for(trabajos.id).total_items == 4

        coordinator.resize(trabajos.id, 3)
        assert coordinator.item_weight(trabajos.id) == pytest.approx(20 / 3)

    def test_resize_can_complete_a_series(self, coordinator, ledger, trabajos):
        coordinator.enable_split(trabajos.id, 4)
        coordinator.grade_item(trabajos.id, "enr-1", 1, 18)
        coordinator.grade_item(trabajos.id, "enr-1", 2, 14)

        coordinator.resize(trabajos.id, 2)

        assert coordinator.state(trabajos.id, "enr-1") is SplitState.COMPLETE
        assert ledger.get_score("enr-1", "trabajos").value == pytest.approx(16)

    def test_disable_refused_with_grades(self, coordinator, ledger, trabajos):
        coordinator.enable_split(trabajos.id, 2)
        coordinator.grade_item(trabajos.id, "enr-1", 1, 10)
        with pytest.raises(InvalidSplitConfig):
            coordinator.disable_split(trabajos.id)

    def test_disable_restores_direct_scoring(self, coordinator, ledger, trabajos):
        coordinator.enable_split(trabajos.id, 2)
        coordinator.disable_split(trabajos.id)

        assert not coordinator.is_split(trabajos.id)
        assert ledger.record_score("enr-1", "trabajos", 15).value == 15


class TestItemGrading:
    """Per-student item grading, states and rollup"""

    def test_state_progression_and_rollup(self, coordinator, ledger, trabajos):
        coordinator.enable_split(trabajos.id, 2)

        assert coordinator.grade_item(trabajos.id, "enr-1", 1, 18) is SplitState.PARTIALLY_GRADED
        assert coordinator.rollup(trabajos.id, "enr-1") is None
        assert ledger.get_score("enr-1", "trabajos") is None

        assert coordinator.grade_item(trabajos.id, "enr-1", 2, 14) is SplitState.COMPLETE
        assert coordinator.rollup(trabajos.id, "enr-1") == pytest.approx(16)
        assert ledger.get_score("enr-1", "trabajos").value == pytest.approx(16)

    def test_regrade_rewrites_rollup(self, coordinator, ledger, trabajos):
        coordinator.enable_split(trabajos.id, 2)
        coordinator.grade_item(trabajos.id, "enr-1", 1, 18)
        coordinator.grade_item(trabajos.id, "enr-1", 2, 14)

        assert coordinator.grade_item(trabajos.id, "enr-1", 2, 20) is SplitState.COMPLETE
        assert ledger.get_score("enr-1", "trabajos").value == pytest.approx(19)

    def test_states_are_tracked_per_student(self, coordinator, trabajos):
        coordinator.enable_split(trabajos.id, 2)
        coordinator.grade_item(trabajos.id, "enr-1", 1, 10)
        coordinator.grade_item(trabajos.id, "enr-1", 2, 10)
        coordinator.grade_item(trabajos.id, "enr-2", 2, 10)

        assert coordinator.state(trabajos.id, "enr-1") is SplitState.COMPLETE
        assert coordinator.state(trabajos.id, "enr-2") is SplitState.PARTIALLY_GRADED
        assert coordinator.state(trabajos.id, "enr-3") is SplitState.PENDING

    @pytest.mark.parametrize("index", [0, 3, -1])
    def test_index_out_of_range(self, coordinator, trabajos, index):
        coordinator.enable_split(trabajos.id, 2)
        with pytest.raises(InvalidSplitConfig):
            coordinator.grade_item(trabajos.id, "enr-1", index, 10)

    def test_score_out_of_range(self, coordinator, trabajos):
        coordinator.enable_split(trabajos.id, 2)
        with pytest.raises(InvalidScore):
            coordinator.grade_item(trabajos.id, "enr-1", 1, 25)
        assert coordinator.state(trabajos.id, "enr-1") is SplitState.PENDING

    def test_grading_unsplit_component(self, coordinator, trabajos):
        with pytest.raises(NotFoundError):
            coordinator.grade_item(trabajos.id, "enr-1", 1, 10)

    def test_items_and_history(self, coordinator, trabajos):
        coordinator.enable_split(trabajos.id, 3)
        coordinator.grade_item(trabajos.id, "enr-1", 2, 12)
        coordinator.grade_item(trabajos.id, "enr-1", 2, 15)

        items = coordinator.items(trabajos.id, "enr-1")
        assert [(i.index, i.score) for i in items] == [(1, None), (2, 15), (3, None)]
        assert [(e.index, e.score) for e in coordinator.history(trabajos.id)] == [(2, 12), (2, 15)]
