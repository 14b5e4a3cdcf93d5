"""
Archive Job - Concurrent Fetch and Zip Packaging.

Turns a selection of photo records into a zip archive. All photos are fetched
concurrently; entries are written in completion order and named after the
capture time. Progress goes through a single writer thread so the reporter
sees one strictly increasing update per completed fetch.
"""

from __future__ import annotations

import io
import queue
import threading
import zipfile
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import UTC, datetime

from core.photo_index import PhotoRecord
from logging_config import get_logger
from pipeline.interfaces.progress import (
    ArchiveOutcome,
    OutcomeStatus,
    Progress,
    ProgressReporter,
)

logger = get_logger(__name__)

FAILURE_POLICIES = ("abort", "skip")

Fetcher = Callable[[str], bytes]


class ArchiveError(RuntimeError):
    """Base class for archive job failures."""


class ArchiveRetrievalError(ArchiveError):
    """Raised when a photo cannot be fetched and the job aborts."""

    def __init__(self, record: PhotoRecord, cause: BaseException):
        super().__init__(f"Failed to fetch photo taken at {entry_name(record.timestamp)}: {cause}")
        self.record = record
        self.cause = cause


class ArchiveCancelledError(ArchiveError):
    """Raised when the job's cancel event is set before it finishes."""


def entry_name(timestamp: datetime) -> str:
    """Archive entry name for a capture, e.g. '2024-01-01 12:00:00 UTC.jpg'."""
    return f"{timestamp.astimezone(UTC).strftime('%Y-%m-%d %H:%M:%S')} UTC.jpg"


class _ProgressActor:
    """Owns the outgoing progress notifications of one job."""

    _STOP = object()

    def __init__(self, reporter: ProgressReporter, handle, total: int):
        self._reporter = reporter
        self._handle = handle
        self._total = total
        self._queue: queue.Queue = queue.Queue()
        self._thread = threading.Thread(
            target=self._run, name="ArchiveProgress", daemon=True
        )

    def start(self) -> None:
        self._thread.start()

    def submit(self, completed: int) -> None:
        self._queue.put(completed)

    def close(self) -> None:
        """Delivers everything already submitted, then stops the thread."""
        self._queue.put(self._STOP)
        self._thread.join()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is self._STOP:
                return
            try:
                self._reporter.notify(self._handle, Progress(item, self._total))
            except Exception as e:
                logger.warning(f"Progress update {item}/{self._total} failed: {e}")


class ArchiveJob:
    """
    One query's fetch-and-package run.

    Args:
        selection: Records to archive, usually PhotoIndex.select() output.
        fetch: Callable returning the bytes of a photo reference.
        reporter: Receives the initial status, per-photo progress and the outcome.
        max_workers: Optional cap on concurrent fetches (default: one per record).
        failure_policy: "abort" (default) fails the whole job on the first fetch
            error; "skip" leaves the failed photo out and carries on.
    """

    def __init__(
        self,
        selection: Iterable[PhotoRecord],
        fetch: Fetcher,
        reporter: ProgressReporter,
        max_workers: int | None = None,
        failure_policy: str = "abort",
    ):
        if failure_policy not in FAILURE_POLICIES:
            raise ValueError(f"Unknown failure policy: {failure_policy}")
        self.selection = list(selection)
        self.total = len(self.selection)
        self.completed = 0
        self.outcome: ArchiveOutcome | None = None
        self._fetch = fetch
        self._reporter = reporter
        self._max_workers = max_workers
        self._failure_policy = failure_policy

    def run(self, cancel_event: threading.Event | None = None) -> bytes:
        """
        Fetches every selected photo and returns the finished zip archive.

        Raises:
            ArchiveRetrievalError: A fetch failed under the "abort" policy.
            ArchiveCancelledError: cancel_event was set before completion.
        """
        handle = self._initial_message()
        actor = _ProgressActor(self._reporter, handle, self.total)
        actor.start()

        workers = self.total if self._max_workers is None else min(self.total, self._max_workers)
        executor = ThreadPoolExecutor(
            max_workers=max(1, workers), thread_name_prefix="ArchiveFetch"
        )
        skipped: list[str] = []
        try:
            data, archived = self._assemble(executor, actor, skipped, cancel_event)
        except ArchiveCancelledError as e:
            self._abandon(executor, actor)
            self._finalize(handle, ArchiveOutcome(OutcomeStatus.CANCELLED, self.total, error=str(e)))
            raise
        except ArchiveRetrievalError as e:
            self._abandon(executor, actor)
            self._finalize(handle, ArchiveOutcome(OutcomeStatus.FAILED, self.total, error=str(e)))
            raise
        except BaseException:
            self._abandon(executor, actor)
            raise

        executor.shutdown(wait=True)
        actor.close()
        self._finalize(
            handle,
            ArchiveOutcome(
                OutcomeStatus.SUCCEEDED,
                self.total,
                archived=archived,
                skipped=tuple(skipped),
            ),
        )
        logger.info(
            f"Archive built: {archived}/{self.total} photos, {len(data)} bytes"
            + (f", {len(skipped)} skipped" if skipped else "")
        )
        return data

    def _assemble(self, executor, actor, skipped, cancel_event) -> tuple[bytes, int]:
        if cancel_event is not None and cancel_event.is_set():
            raise ArchiveCancelledError("Archive job cancelled before start")

        buffer = io.BytesIO()
        archived = 0
        with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as archive:
            futures = {
                executor.submit(self._fetch, record.reference): record
                for record in self.selection
            }
            for future in as_completed(futures):
                if cancel_event is not None and cancel_event.is_set():
                    raise ArchiveCancelledError(
                        f"Archive job cancelled after {self.completed}/{self.total} photos"
                    )
                record = futures[future]
                try:
                    photo = future.result()
                except Exception as e:
                    if self._failure_policy == "abort":
                        raise ArchiveRetrievalError(record, e) from e
                    logger.warning(f"Skipping {entry_name(record.timestamp)}: {e}")
                    skipped.append(record.reference)
                else:
                    archive.writestr(entry_name(record.timestamp), photo)
                    archived += 1
                self.completed += 1
                actor.submit(self.completed)
        return buffer.getvalue(), archived

    def _abandon(self, executor: ThreadPoolExecutor, actor: _ProgressActor) -> None:
        executor.shutdown(wait=False, cancel_futures=True)
        actor.close()

    def _initial_message(self):
        try:
            return self._reporter.initial_message(Progress(0, self.total))
        except Exception as e:
            logger.warning(f"Could not post initial progress: {e}")
            return None

    def _finalize(self, handle, outcome: ArchiveOutcome) -> None:
        self.outcome = outcome
        try:
            self._reporter.finalize(handle, outcome)
        except Exception as e:
            logger.warning(f"Could not post archive outcome ({outcome.status.value}): {e}")


def run_archive_job(
    selection: Iterable[PhotoRecord],
    fetch: Fetcher,
    reporter: ProgressReporter,
    cancel_event: threading.Event | None = None,
    **kwargs,
) -> bytes:
    """Builds and runs an ArchiveJob in one call."""
    return ArchiveJob(selection, fetch, reporter, **kwargs).run(cancel_event=cancel_event)
