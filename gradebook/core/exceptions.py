"""
Custom exceptions for the gradebook engine.
"""

from typing import Optional, Any, Dict


class GradebookException(Exception):
    """Base exception for all gradebook-related errors."""

    def __init__(self, message: str, error_code: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}


class ValidationError(GradebookException):
    """Raised when data validation fails."""
    pass


class InvalidWeight(ValidationError):
    """Raised when a component weight is outside [0, 100]."""

    def __init__(self, weight: Any):
        super().__init__(
            f"Weight must be a number between 0 and 100, got {weight!r}",
            error_code="INVALID_WEIGHT",
            details={'weight': weight}
        )
        self.weight = weight


class InvalidScore(ValidationError):
    """Raised when a score is outside [0, 20]."""

    def __init__(self, value: Any):
        super().__init__(
            f"Score must be a number between 0 and 20, got {value!r}",
            error_code="INVALID_SCORE",
            details={'value': value}
        )
        self.value = value


class InvalidSplitConfig(ValidationError):
    """Raised when a split series configuration or item index is invalid."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, error_code="INVALID_SPLIT_CONFIG", details=details)


class WeightSumError(ValidationError):
    """Raised when the active component weights do not add up to 100."""

    def __init__(self, actual_sum: float):
        super().__init__(
            f"Weights of active components must sum to 100, current sum is {actual_sum:.2f}",
            error_code="WEIGHT_SUM",
            details={'actual_sum': actual_sum}
        )
        self.actual_sum = actual_sum


class SchemaNotAppliedError(ValidationError):
    """Raised when grading is attempted before the schema has been applied."""
    pass


class NotFoundError(GradebookException):
    """Raised when a component, enrollment or series is not found."""
    pass


class DuplicateEntityError(GradebookException):
    """Raised when attempting to create a duplicate entity."""
    pass


class ConcurrencyError(GradebookException):
    """Raised when a save carries a stale version token."""
    pass


class PersistenceError(GradebookException):
    """Raised when persistence operations fail."""
    pass


class SchemaSaveError(PersistenceError):
    """Raised when the evaluation schema could not be saved.

    Grading stays blocked until the schema is saved successfully.
    """
    pass


class StudentSaveError(PersistenceError):
    """Raised when the scores of a single student could not be saved."""

    def __init__(self, enrollment_id: str, message: str):
        super().__init__(message, error_code="STUDENT_SAVE", details={'enrollment_id': enrollment_id})
        self.enrollment_id = enrollment_id


class ConfigurationError(GradebookException):
    """Raised when configuration is invalid."""
    pass
