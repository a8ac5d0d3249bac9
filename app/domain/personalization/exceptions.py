"""Personalization domain errors"""

from typing import Optional


class PersonalizationError(Exception):
    """Base class for personalization failures surfaced to the caller"""

    status_code = 400

    def __init__(self, message: str, errors: Optional[list[str]] = None):
        super().__init__(message)
        self.message = message
        self.errors = errors or []


class NotFoundError(PersonalizationError):
    """Referenced config, submission, snapshot or setup does not exist"""

    status_code = 404


class LockedSubmissionError(PersonalizationError):
    """Write attempted against a locked submission"""

    status_code = 409

    def __init__(self, submission_id: str):
        super().__init__(
            f"Personalization {submission_id} is locked and cannot be modified. "
            "Start a new personalization or contact support."
        )
        self.submission_id = submission_id


class RevisionConflictError(PersonalizationError):
    """Write based on a stale revision of a draft submission"""

    status_code = 409

    def __init__(self, submission_id: str, expected: int, actual: int):
        super().__init__(
            f"Personalization {submission_id} was changed elsewhere "
            f"(revision {actual}, expected {expected}). Reload and try again."
        )
        self.submission_id = submission_id
        self.expected = expected
        self.actual = actual


class FreezeIntegrityError(PersonalizationError):
    """Snapshot could not be frozen; nothing was written"""

    status_code = 422
