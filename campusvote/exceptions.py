"""
Error taxonomy for the election service.

Services raise these; the HTTP layer maps each one to a status code.
Every error carries a context dict for logging and an ``is_retryable``
flag so callers know whether a retry with backoff makes sense.
"""

from typing import Any, Dict, Optional


class CampusVoteError(Exception):
    """Base exception for all election service errors"""

    _retryable: bool = False
    status_code: int = 400

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        self.message = message
        self.context = context or {}
        super().__init__(message)

    @property
    def is_retryable(self) -> bool:
        return self._retryable

    @property
    def code(self) -> str:
        return type(self).__name__

    def __str__(self):
        base_msg = super().__str__()
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{base_msg} (context: {context_str})"
        return base_msg


# ========== Voting Errors ==========


class NotFound(CampusVoteError):
    """Election or candidate does not exist"""
    status_code = 404


class ElectionNotActive(CampusVoteError):
    """Vote attempted outside the election's [start, end] window"""
    status_code = 409


class InvalidCandidate(CampusVoteError):
    """Candidate missing or registered under a different election"""
    status_code = 422


class AlreadyVoted(CampusVoteError):
    """A ballot already exists for this (student, election) pair"""
    status_code = 409


class Forbidden(CampusVoteError):
    """Principal lacks the role needed for the operation"""
    status_code = 403


class Conflict(CampusVoteError):
    """Operation would break a data invariant (e.g. deleting a voted election)"""
    status_code = 409


class ValidationFailed(CampusVoteError):
    """Input failed field validation"""
    status_code = 422


# ========== Storage Errors ==========


class Unavailable(CampusVoteError):
    """Storage or network failure, including request timeouts

    Safe to retry with backoff.
    """
    _retryable = True
    status_code = 503

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.operation = operation
        self.original_error = original_error
        context = {}
        if operation:
            context["operation"] = operation
        if original_error:
            context["original_error"] = str(original_error)
        super().__init__(message, context)


class DataIntegrityError(CampusVoteError):
    """Stored document does not match the expected record shape"""
    status_code = 500

    def __init__(self, message: str, collection: Optional[str] = None, document_id: Optional[str] = None):
        self.collection = collection
        self.document_id = document_id
        context = {}
        if collection:
            context["collection"] = collection
        if document_id:
            context["document_id"] = document_id
        super().__init__(message, context)
