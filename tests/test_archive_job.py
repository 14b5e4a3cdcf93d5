"""
Tests for the concurrent fetch-and-zip archive job.

Uses an in-memory reporter double; no Telegram calls.
"""

import io
import random
import threading
import time
import zipfile
from datetime import UTC, datetime, timedelta

import pytest

from core.archive_job import (
    ArchiveCancelledError,
    ArchiveJob,
    ArchiveRetrievalError,
    entry_name,
    run_archive_job,
)
from core.photo_index import PhotoRecord
from pipeline.interfaces.progress import OutcomeStatus, Progress, ProgressReporter

T0 = datetime(2024, 1, 1, 12, 0, 0, tzinfo=UTC)


class RecordingReporter(ProgressReporter):
    """Records every reporter call in order."""

    def __init__(self, fail_notify: bool = False):
        self.calls = []
        self.notifications: list[Progress] = []
        self.outcome = None
        self._fail_notify = fail_notify
        self._lock = threading.Lock()

    def initial_message(self, progress):
        with self._lock:
            self.calls.append(("initial", progress))
        return "handle-1"

    def notify(self, handle, progress):
        assert handle == "handle-1"
        with self._lock:
            self.calls.append(("notify", progress))
            self.notifications.append(progress)
        if self._fail_notify:
            raise RuntimeError("message edit failed")

    def finalize(self, handle, outcome):
        with self._lock:
            self.calls.append(("finalize", outcome))
            self.outcome = outcome


def _selection(n):
    return [PhotoRecord(T0 + timedelta(seconds=i), f"ref-{i}") for i in range(n)]


def _fetch(reference):
    # Random delays so completions arrive out of index order.
    time.sleep(random.uniform(0, 0.02))
    return f"bytes of {reference}".encode()


def _entries(data):
    with zipfile.ZipFile(io.BytesIO(data)) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


class TestSuccess:
    def test_archive_contains_every_photo(self):
        reporter = RecordingReporter()
        selection = _selection(12)

        data = ArchiveJob(selection, _fetch, reporter).run()

        entries = _entries(data)
        assert len(entries) == 12
        for record in selection:
            assert entries[entry_name(record.timestamp)] == f"bytes of {record.reference}".encode()

    def test_progress_sequence(self):
        reporter = RecordingReporter()
        n = 10

        ArchiveJob(_selection(n), _fetch, reporter).run()

        assert reporter.calls[0] == ("initial", Progress(0, n))
        assert reporter.notifications == [Progress(i, n) for i in range(1, n + 1)]
        assert reporter.calls[-1][0] == "finalize"
        assert reporter.outcome.status is OutcomeStatus.SUCCEEDED
        assert reporter.outcome.archived == n

    def test_entry_name_format(self):
        assert entry_name(T0) == "2024-01-01 12:00:00 UTC.jpg"

    def test_entries_are_deflated(self):
        data = ArchiveJob(_selection(2), lambda ref: b"x" * 1000, RecordingReporter()).run()
        with zipfile.ZipFile(io.BytesIO(data)) as archive:
            assert all(i.compress_type == zipfile.ZIP_DEFLATED for i in archive.infolist())

    def test_empty_selection_gives_empty_archive(self):
        reporter = RecordingReporter()

        data = ArchiveJob([], _fetch, reporter).run()

        assert _entries(data) == {}
        assert reporter.calls[0] == ("initial", Progress(0, 0))
        assert reporter.notifications == []
        assert reporter.outcome.status is OutcomeStatus.SUCCEEDED

    def test_fetches_run_concurrently(self):
        n = 6
        barrier = threading.Barrier(n, timeout=5)

        def _fetch_together(reference):
            # Deadlocks unless all fetches are in flight at once.
            barrier.wait()
            return reference.encode()

        data = ArchiveJob(_selection(n), _fetch_together, RecordingReporter()).run()
        assert len(_entries(data)) == n

    def test_max_workers_caps_concurrency(self):
        active = 0
        peak = 0
        lock = threading.Lock()

        def _tracked(reference):
            nonlocal active, peak
            with lock:
                active += 1
                peak = max(peak, active)
            time.sleep(0.01)
            with lock:
                active -= 1
            return b""

        ArchiveJob(_selection(8), _tracked, RecordingReporter(), max_workers=2).run()
        assert peak <= 2

    def test_reporter_failures_do_not_abort(self):
        reporter = RecordingReporter(fail_notify=True)
        data = ArchiveJob(_selection(3), _fetch, reporter).run()
        assert len(_entries(data)) == 3
        assert reporter.outcome.succeeded

    def test_run_archive_job_helper(self):
        data = run_archive_job(_selection(2), _fetch, RecordingReporter())
        assert len(_entries(data)) == 2


class TestFailure:
    def test_single_failure_aborts_job(self):
        reporter = RecordingReporter()

        def _flaky(reference):
            if reference == "ref-3":
                raise ConnectionError("network down")
            return b"ok"

        job = ArchiveJob(_selection(6), _flaky, reporter)
        with pytest.raises(ArchiveRetrievalError) as exc_info:
            job.run()

        assert exc_info.value.record.reference == "ref-3"
        assert isinstance(exc_info.value.cause, ConnectionError)
        assert reporter.outcome.status is OutcomeStatus.FAILED
        assert "network down" in reporter.outcome.error
        assert [c[0] for c in reporter.calls].count("finalize") == 1
        assert job.outcome is reporter.outcome

    def test_skip_policy_leaves_out_failed_photo(self):
        reporter = RecordingReporter()

        def _flaky(reference):
            if reference == "ref-1":
                raise TimeoutError("slow")
            return b"ok"

        data = ArchiveJob(_selection(4), _flaky, reporter, failure_policy="skip").run()

        entries = _entries(data)
        assert len(entries) == 3
        assert entry_name(T0 + timedelta(seconds=1)) not in entries
        assert reporter.outcome.skipped == ("ref-1",)
        assert reporter.outcome.archived == 3
        assert reporter.notifications[-1] == Progress(4, 4)

    def test_unknown_policy_rejected(self):
        with pytest.raises(ValueError):
            ArchiveJob([], _fetch, RecordingReporter(), failure_policy="retry")


class TestCancellation:
    def test_cancel_before_start(self):
        reporter = RecordingReporter()
        cancel = threading.Event()
        cancel.set()

        with pytest.raises(ArchiveCancelledError):
            ArchiveJob(_selection(3), _fetch, reporter).run(cancel_event=cancel)

        assert reporter.outcome.status is OutcomeStatus.CANCELLED
        assert reporter.notifications == []

    def test_cancel_between_completions(self):
        reporter = RecordingReporter()
        cancel = threading.Event()
        release = threading.Event()

        def _fetch_then_cancel(reference):
            if reference == "ref-0":
                cancel.set()
                return b"first"
            release.wait(timeout=5)
            return b"late"

        job = ArchiveJob(_selection(3), _fetch_then_cancel, reporter)
        try:
            with pytest.raises(ArchiveCancelledError):
                job.run(cancel_event=cancel)
        finally:
            release.set()

        assert reporter.outcome.status is OutcomeStatus.CANCELLED
        assert job.completed < 3
