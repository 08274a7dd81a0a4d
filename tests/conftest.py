import pytest

from gradebook.core.name_mapper import NameMapper
from gradebook.persistence import InMemoryPersistence
from gradebook.services import (
    EvaluationSchemaManager, GradeLedger, SplitEvaluationCoordinator, AggregationEngine,
    RosterEnrollmentService, GradingSession
)


@pytest.fixture
def schema():
    """Empty schema with the default name mapper"""
    return EvaluationSchemaManager(NameMapper())


@pytest.fixture
def course_schema(schema):
    """Parcial 1 30%, Prácticas 30%, Trabajos 20%, Examen Final 20%"""
    schema.add_component("Parcial 1", 30)
    schema.add_component("Prácticas", 30)
    schema.add_component("Trabajos", 20)
    schema.add_component("Examen Final", 20)
    schema.validate()
    return schema


@pytest.fixture
def ledger(course_schema):
    return GradeLedger(course_schema)


@pytest.fixture
def coordinator(course_schema, ledger):
    return SplitEvaluationCoordinator(course_schema, ledger)


@pytest.fixture
def engine(course_schema, ledger, coordinator):
    return AggregationEngine(course_schema, ledger, coordinator)


@pytest.fixture
def persistence():
    return InMemoryPersistence()


@pytest.fixture
def roster():
    """Three active enrollments in CS101"""
    service = RosterEnrollmentService()
    for number in range(1, 4):
        service.enroll(f"enr-{number}", "CS101", f"S00{number}", period_id="2024-1")
    return service


@pytest.fixture
def session(persistence, roster):
    """CS101 session with an applied four-component schema"""
    grading = GradingSession("CS101", persistence, roster)
    grading.schema.add_component("Parcial 1", 30)
    grading.schema.add_component("Prácticas", 30)
    grading.schema.add_component("Trabajos", 20)
    grading.schema.add_component("Examen Final", 20)
    grading.apply_schema()
    return grading
