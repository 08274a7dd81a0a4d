from gradebook.main import GradingPlatform
from gradebook.persistence import InMemoryPersistence


class TestGradingPlatform:
    """Wiring of persistence, roster and REST API"""

    def test_defaults_to_memory_persistence(self):
        platform = GradingPlatform({'log_level': 'WARNING'})
        assert isinstance(platform.persistence, InMemoryPersistence)
        assert platform.passing_grade == 11

    def test_sessions_are_shared_with_the_rest_api(self):
        platform = GradingPlatform({'log_level': 'WARNING'})
        session = platform.open_session("CS101")

        assert session is platform.rest_api.get_session("CS101")
        assert platform.open_session("CS101") is session

    def test_edits_made_through_the_platform_are_served_over_rest(self):
        from fastapi.testclient import TestClient

        platform = GradingPlatform({'log_level': 'WARNING'})
        session = platform.open_session("CS101")
        session.schema.add_component("Parcial 1", 100)
        session.apply_schema()

        body = TestClient(platform.rest_api.app).get("/courses/CS101/schema").json()
        assert body["state"] == "applied"
        assert [c["key"] for c in body["components"]] == ["parcial1"]
