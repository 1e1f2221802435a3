"""
Workflow error taxonomy.

Fatal errors abort an action immediately and are never retried. Transient errors
are retried by RetryExecutor; once attempts run out they surface as RetryExhaustedError.
Every error carries the HTTP status the action endpoint responds with.
"""

from typing import Optional


class WorkflowError(Exception):
    """Base class for every error the campaign workflow reports to callers."""
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FatalError(WorkflowError):
    """Deterministic failure; retrying cannot help."""


class ValidationError(FatalError):
    status_code = 400


class AuthenticationError(FatalError):
    status_code = 401


class QuotaExceededError(FatalError):
    status_code = 402

    def __init__(self, message: str = "The content service is out of credits. Please add credits to continue."):
        super().__init__(message)


class CampaignNotFoundError(FatalError):
    status_code = 404

    def __init__(self, campaign_id):
        super().__init__(f"Campaign {campaign_id} not found")
        self.campaign_id = campaign_id


class InvalidTransitionError(FatalError):
    status_code = 409


class WorkflowInProgressError(FatalError):
    status_code = 409


class TransientServiceError(WorkflowError):
    """Network failure, unexpected non-2xx, or an unparseable response."""
    status_code = 502


class RetryExhaustedError(WorkflowError):
    status_code = 502

    def __init__(self, operation: str, attempts: int, last_error: Optional[BaseException]):
        detail = str(last_error) if last_error else "unknown error"
        super().__init__(f"{operation} failed after {attempts} attempts: {detail}")
        self.operation = operation
        self.attempts = attempts
        self.last_error = last_error
