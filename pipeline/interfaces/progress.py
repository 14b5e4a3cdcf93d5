"""
Progress Interface - Archive Job Status Reporting.

Defines the contract the archive job uses to report status, independent of
the messaging transport that shows it to the operator.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Progress:
    """
    Completion pair for an archive job.

    Attributes:
        completed: Number of photos handled so far.
        total: Number of photos in the selection.
    """

    completed: int
    total: int

    def __str__(self) -> str:
        return f"{self.completed}/{self.total}"


class OutcomeStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class ArchiveOutcome:
    """
    Final result of an archive job, passed to ProgressReporter.finalize.

    Attributes:
        status: How the job ended.
        total: Number of photos in the selection.
        archived: Number of entries written to the archive.
        skipped: References that failed and were left out (skip policy only).
        error: Error description for failed jobs.
    """

    status: OutcomeStatus
    total: int
    archived: int = 0
    skipped: tuple[str, ...] = ()
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is OutcomeStatus.SUCCEEDED


class ProgressReporter(ABC):
    """
    Interface for archive job progress.

    Implementations should handle:
    - Creating a status message the job can refer to by handle
    - Updating it as photos are fetched
    - Showing the final outcome
    """

    @abstractmethod
    def initial_message(self, progress: Progress) -> Any:
        """
        Shows the initial status (0/total).

        Returns:
            Opaque handle passed back to notify() and finalize().
        """
        pass

    @abstractmethod
    def notify(self, handle: Any, progress: Progress) -> None:
        """
        Updates the status after a photo has been handled.

        Args:
            handle: Value returned by initial_message().
            progress: Current completion pair.
        """
        pass

    @abstractmethod
    def finalize(self, handle: Any, outcome: ArchiveOutcome) -> None:
        """
        Shows the final outcome of the job.

        Args:
            handle: Value returned by initial_message().
            outcome: Result of the job.
        """
        pass
