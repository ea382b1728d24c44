"""Exceptions raised at the external boundaries and inside batch runs."""

from typing import Optional


TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})


class FinoraError(Exception):
    """Base exception for the application"""


class TextGenerationError(FinoraError):
    """The text-generation provider failed or returned an error status"""

    def __init__(
        self,
        message: str,
        *,
        status_code: Optional[int] = None,
        retry_after: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retry_after = retry_after

    @property
    def is_transient(self) -> bool:
        return self.status_code in TRANSIENT_STATUS_CODES


class EmailDeliveryError(FinoraError):
    """The email provider rejected the message or was unreachable"""


class CommitTimeoutError(FinoraError):
    """A transactional scope ran past its maximum commit time"""


class ScheduleConflict(FinoraError):
    """The scheduled row changed after it was read; another run owns it"""
