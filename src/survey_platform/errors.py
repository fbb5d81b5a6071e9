"""
Error taxonomy shared by the data-access layer and its callers.

Request handlers translate these into HTTP status codes; nothing in the core
retries on any of them.
"""

from __future__ import annotations

from typing import List, Optional, Sequence


class SurveyPlatformError(Exception):
    """Base class for every error raised by the survey platform."""


class ValidationError(SurveyPlatformError):
    """Input failed its schema. Carries one message per violated field."""

    def __init__(self, messages: Sequence[str]) -> None:
        self.messages: List[str] = list(messages)
        super().__init__(f"Validation failed: {', '.join(self.messages)}")


class StoreError(SurveyPlatformError):
    """The underlying DynamoDB operation failed."""

    def __init__(self, operation: str, code: str = "", message: str = "") -> None:
        self.operation = operation
        self.code = code
        self.message = message
        detail = f"{code}: {message}" if code else message
        super().__init__(f"{operation} failed: {detail}")


class NotFoundError(SurveyPlatformError):
    pass


class InvalidTransitionError(SurveyPlatformError):
    """A survey status change that the lifecycle does not allow."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot change survey status from {current} to {requested}")


class SubmissionError(SurveyPlatformError):
    """
    One or more answers of a response batch failed to write.

    Answers that were written before the failure are not rolled back, so a
    failed submission may leave some of its answers in the table.
    """

    def __init__(self, attempted: int, failed: int, cause: Optional[BaseException] = None) -> None:
        self.attempted = attempted
        self.failed = failed
        self.cause = cause
        super().__init__(f"Response submission failed: {failed} of {attempted} answers not stored")
