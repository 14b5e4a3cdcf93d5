"""
Capture Service - Periodic Photo Capture.

Consumes raw samples from the frame queue, keeps every Nth frame, uploads it
to the photo store and records the returned reference in the photo index.
"""

import threading
from collections.abc import Callable
from datetime import UTC, datetime

from camera.frame_decoder import MalformedSampleError, decode_yuv420p, encode_png
from core.frame_queue import FrameQueue
from core.photo_index import PhotoIndex, PhotoRecord
from logging_config import get_logger
from utils.db import PhotoStoreError

logger = get_logger(__name__)

# Uploads PNG bytes and returns the store's reference for them.
Uploader = Callable[[bytes], str]


class CaptureService:
    """
    Turns the live frame stream into indexed photos.

    Features:
    - Keeps one of every `capture_frequency` frames
    - Drops malformed samples without stopping
    - Logs upload and storage failures and carries on
    """

    def __init__(
        self,
        frame_queue: FrameQueue,
        photo_index: PhotoIndex,
        upload: Uploader,
        width: int = 1280,
        height: int = 720,
        capture_frequency: int = 1,
        clock: Callable[[], datetime] | None = None,
    ):
        self._queue = frame_queue
        self._index = photo_index
        self._upload = upload
        self._width = width
        self._height = height
        self._frequency = max(1, capture_frequency)
        self._clock = clock or (lambda: datetime.now(UTC))

        self._frame_counter = 0
        self._stop_event = threading.Event()
        self._worker_thread: threading.Thread | None = None

        self.captured_count = 0
        self.malformed_count = 0
        self.failed_count = 0

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._worker_thread and self._worker_thread.is_alive():
            logger.warning("CaptureService worker already running")
            return
        self._stop_event.clear()
        self._worker_thread = threading.Thread(
            target=self._worker_loop, name="CaptureWorker", daemon=True
        )
        self._worker_thread.start()
        logger.info(f"CaptureService started (keeping 1 of every {self._frequency} frames)")

    def stop(self) -> None:
        self._stop_event.set()
        if self._worker_thread:
            self._worker_thread.join(timeout=5.0)
            logger.info("CaptureService stopped")

    # ------------------------------------------------------------------
    # Processing
    # ------------------------------------------------------------------

    def _worker_loop(self) -> None:
        while not self._stop_event.is_set():
            sample = self._queue.get(timeout=1.0)
            if sample is None:
                continue
            self.handle_sample(sample)

    def handle_sample(self, sample: bytes) -> PhotoRecord | None:
        """
        Processes one raw sample.

        Returns:
            The indexed record if this frame was captured, else None.
        """
        index = self._frame_counter
        self._frame_counter += 1
        if index % self._frequency != 0:
            return None

        try:
            rgb = decode_yuv420p(sample, self._width, self._height)
        except MalformedSampleError as e:
            self.malformed_count += 1
            logger.warning(f"Dropping malformed sample: {e}")
            return None

        try:
            reference = self._upload(encode_png(rgb))
        except Exception as e:
            self.failed_count += 1
            logger.error(f"Photo upload failed: {e}")
            return None

        try:
            record = self._index.insert(self._clock(), reference)
        except PhotoStoreError as e:
            self.failed_count += 1
            logger.error(f"Could not index uploaded photo: {e}")
            return None

        self.captured_count += 1
        logger.debug(f"Captured photo at {record.timestamp.isoformat()}")
        return record
