"""
Services module containing the grading components of a course.
"""

from .schema_manager import EvaluationSchemaManager
from .grade_ledger import GradeLedger
from .split_coordinator import SplitEvaluationCoordinator
from .aggregation_engine import AggregationEngine, ComponentContribution, StudentStanding, round_half_up
from .enrollment_service import RosterEnrollmentService, EnrollmentRecord
from .grading_session import GradingSession, SaveOutcome, BatchSaveReport

__all__ = [
    "EvaluationSchemaManager",
    "GradeLedger",
    "SplitEvaluationCoordinator",
    "AggregationEngine",
    "ComponentContribution",
    "StudentStanding",
    "round_half_up",
    "RosterEnrollmentService",
    "EnrollmentRecord",
    "GradingSession",
    "SaveOutcome",
    "BatchSaveReport",
]
