"""
Core module containing the grading object model and base classes.
"""

from .entities import *
from .interfaces import *
from .exceptions import *
from .enums import *
from .name_mapper import NameMapper, normalize_name, derive_key

__all__ = [
    # Entities
    "AbstractEntity",
    "EvaluationComponent",
    "NameMapping",
    "StudentScore",
    "SplitItem",
    "SplitGradeEvent",
    "SplitSeries",
    "validate_weight",
    "validate_score",
    "validate_total_items",

    # Name mapping
    "NameMapper",
    "normalize_name",
    "derive_key",

    # Interfaces
    "PersistenceAPI",
    "CourseEnrollmentService",

    # Enums
    "SchemaState",
    "SplitState",
    "EnrollmentStatus",
    "SaveStatus",
    "PassStatus",

    # Exceptions
    "GradebookException",
    "ValidationError",
    "InvalidWeight",
    "InvalidScore",
    "InvalidSplitConfig",
    "WeightSumError",
    "SchemaNotAppliedError",
    "NotFoundError",
    "DuplicateEntityError",
    "ConcurrencyError",
    "PersistenceError",
    "SchemaSaveError",
    "StudentSaveError",
    "ConfigurationError",
]
