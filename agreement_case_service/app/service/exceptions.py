"""
Custom exceptions for the Agreement Case service.

Every workflow failure derives from BaseCaseManagementError so the HTTP layer
can translate the taxonomy (not-found, invalid-input, forbidden, conflict,
precondition-failed) into status codes in one place.
"""
from typing import Dict, List, Optional


class BaseCaseManagementError(Exception):
    """Base class for exceptions in this module."""
    pass

class CaseNotFoundError(BaseCaseManagementError):
    """Raised when a case id is malformed or no case exists for it."""
    def __init__(self, case_id: str):
        self.case_id = case_id
        super().__init__(f"Case with ID '{case_id}' not found.")

class LawyerNotFoundError(BaseCaseManagementError):
    def __init__(self, lawyer_id: str):
        self.lawyer_id = lawyer_id
        super().__init__(f"Lawyer with ID '{lawyer_id}' not found.")

class UserNotFoundError(BaseCaseManagementError):
    def __init__(self, user_id: str):
        self.user_id = user_id
        super().__init__(f"User with ID '{user_id}' not found.")

class InvalidInputError(BaseCaseManagementError):
    """Raised for a bad step number, a missing answers list or an unsupported status."""
    pass

class ForbiddenActionError(BaseCaseManagementError):
    """Raised on role, ownership or assignment mismatch, and on writes to a sealed case."""
    def __init__(self, case_id: Optional[str], reason: str):
        self.case_id = case_id
        self.reason = reason
        super().__init__(reason)

class ConflictError(BaseCaseManagementError):
    """Raised when a lawyer is already chosen by the other party, or a partner is already attached."""
    pass

class PreconditionFailedError(BaseCaseManagementError):
    """Raised when an operation is attempted before the case reached the required state."""
    def __init__(self, case_id: str, message: str, missing_steps: Optional[Dict[str, List[int]]] = None):
        self.case_id = case_id
        self.missing_steps = missing_steps or {}
        super().__init__(message)

class ConcurrencyConflictError(BaseCaseManagementError):
    """Raised when a version conflict is detected during an update operation."""
    def __init__(self, aggregate_id: str, expected_version: int, actual_version: Optional[int] = None):
        self.aggregate_id = aggregate_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Concurrency conflict for case '{aggregate_id}'. "
            f"Expected version {expected_version}, but found {actual_version}."
        )

class ConfigurationError(BaseCaseManagementError):
    """Raised when a configuration issue is detected."""
    pass

class KafkaProducerError(BaseCaseManagementError):
    """Raised when there's an issue with Kafka message production."""
    pass
