import queue
import threading

from logging_config import get_logger

logger = get_logger(__name__)

DROP_OLDEST = "drop_oldest"
BLOCK = "block"
POLICIES = (DROP_OLDEST, BLOCK)


class FrameQueue:
    """
    Bounded hand-off between the frame reader thread and the capture worker.

    When full, "drop_oldest" discards the oldest waiting sample so the
    producer never stalls; "block" makes the producer wait for room.
    """

    def __init__(self, maxsize: int = 8, policy: str = DROP_OLDEST):
        if maxsize < 1:
            raise ValueError("FrameQueue needs maxsize >= 1")
        if policy not in POLICIES:
            raise ValueError(f"Unknown overflow policy: {policy}")
        self._queue: queue.Queue = queue.Queue(maxsize=maxsize)
        self._policy = policy
        self._maxsize = maxsize
        self._put_lock = threading.Lock()
        self._dropped = 0

    @property
    def policy(self) -> str:
        return self._policy

    @property
    def maxsize(self) -> int:
        return self._maxsize

    @property
    def dropped_count(self) -> int:
        return self._dropped

    def qsize(self) -> int:
        return self._queue.qsize()

    def put(self, sample: bytes, timeout: float | None = None) -> bool:
        """
        Adds a sample according to the overflow policy.

        Returns:
            False only if the "block" policy timed out waiting for room.
        """
        if self._policy == BLOCK:
            try:
                self._queue.put(sample, timeout=timeout)
                return True
            except queue.Full:
                return False

        # Single producer lock so drop-and-put is not interleaved with another put.
        with self._put_lock:
            while True:
                try:
                    self._queue.put_nowait(sample)
                    return True
                except queue.Full:
                    try:
                        self._queue.get_nowait()
                        self._dropped += 1
                        if self._dropped % 100 == 1:
                            logger.warning(
                                f"Frame queue full, dropped {self._dropped} samples so far"
                            )
                    except queue.Empty:
                        pass

    def get(self, timeout: float | None = None) -> bytes | None:
        """Returns the next sample, or None on timeout."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None
