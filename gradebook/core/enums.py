"""
Enumerations and constants for the gradebook engine.
"""

from enum import Enum


class SchemaState(Enum):
    """Lifecycle of a course evaluation schema."""
    DRAFT = "draft"
    VALID = "valid"
    APPLIED = "applied"


class SplitState(Enum):
    """Grading progress of a split series for one student."""
    PENDING = "pending"
    PARTIALLY_GRADED = "partially_graded"
    COMPLETE = "complete"


class EnrollmentStatus(Enum):
    """Status of an enrollment."""
    ACTIVE = "active"
    WITHDRAWN = "withdrawn"


class SaveStatus(Enum):
    """Outcome of a single save in a batch."""
    SAVED = "saved"
    FAILED = "failed"
    SKIPPED = "skipped"


class PassStatus(Enum):
    """Pass/fail standing derived from the final average."""
    PASSED = "passed"
    FAILED = "failed"


# Score scale
MIN_SCORE = 0.0
MAX_SCORE = 20.0

# Weights are percentages of the final grade
MIN_WEIGHT = 0.0
MAX_WEIGHT = 100.0
WEIGHT_TOTAL = 100.0
WEIGHT_TOLERANCE = 0.01

# Split series bounds
MIN_SPLIT_ITEMS = 2
MAX_SPLIT_ITEMS = 10

PASSING_GRADE = 11
