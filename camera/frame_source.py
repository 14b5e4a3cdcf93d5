# ------------------------------------------------------------------------------
# FFmpeg-backed raw frame source for RTSP cameras
# camera/frame_source.py
# ------------------------------------------------------------------------------
import subprocess
import threading
import time
from threading import Event

from camera.frame_decoder import expected_sample_size
from core.frame_queue import FrameQueue
from logging_config import get_logger
from pipeline.interfaces.frame_source import FrameSourceInterface
from utils.settings import mask_secret

logger = get_logger(__name__)


def camera_stream_url(address: str, verification_code: str) -> str:
    """RTSP URL of the camera's main H.264 stream."""
    return f"rtsp://admin:{verification_code}@{address}:554/h264_stream"


class FFmpegFrameSource(FrameSourceInterface):
    """
    Reads raw planar YUV 4:2:0 samples from an RTSP stream through FFmpeg.

    FFmpeg decodes, rate-limits and scales the stream; a dedicated reader
    thread cuts stdout into fixed-size samples and hands them to a FrameQueue.
    If FFmpeg exits, the reader restarts it with exponential backoff.
    """

    MAX_BACKOFF = 60
    PUT_TIMEOUT = 1.0

    def __init__(
        self,
        url: str,
        frame_queue: FrameQueue,
        width: int = 1280,
        height: int = 720,
        max_fps: float = 1.0,
        debug: bool = False,
    ):
        self._url = url
        self._queue = frame_queue
        self._width = width
        self._height = height
        self._max_fps = max_fps
        self._debug = debug
        self._sample_size = expected_sample_size(width, height)
        self.stop_event = Event()
        self.ffmpeg_process = None
        self.reader_thread = None
        self.retry_count = 0
        self.samples_read = 0
        self._process_lock = threading.Lock()

    @property
    def frame_size(self) -> tuple[int, int]:
        return (self._width, self._height)

    def _ffmpeg_command(self) -> list[str]:
        return [
            "ffmpeg",
            "-loglevel",
            "error",
            "-rtsp_transport",
            "tcp",
            "-i",
            self._url,
            "-vf",
            f"fps={self._max_fps},scale={self._width}:{self._height}",
            "-pix_fmt",
            "yuv420p",
            "-f",
            "rawvideo",
            "-an",
            "pipe:",
        ]

    def start(self) -> None:
        """Starts the reader thread."""
        if self.is_active():
            logger.info("Frame source already running.")
            return
        self.stop_event.clear()
        self.reader_thread = threading.Thread(
            target=self._reader, daemon=True, name="FrameReaderThread"
        )
        self.reader_thread.start()
        logger.info("Frame reader thread started.")

    def is_active(self) -> bool:
        return self.reader_thread is not None and self.reader_thread.is_alive()

    def _spawn_ffmpeg(self) -> None:
        cmd = self._ffmpeg_command()
        logged = " ".join(cmd).replace(self._url, self._masked_url())
        logger.debug(f"FFmpeg command: {logged}")
        with self._process_lock:
            self.ffmpeg_process = subprocess.Popen(
                cmd,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE if self._debug else subprocess.DEVNULL,
                bufsize=self._sample_size * 2,
            )
        if self._debug:
            threading.Thread(target=self._log_ffmpeg_errors, daemon=True).start()

    def _masked_url(self) -> str:
        scheme, _, rest = self._url.partition("://")
        credentials, at, host = rest.rpartition("@")
        if not at:
            return self._url
        user, _, password = credentials.partition(":")
        return f"{scheme}://{user}:{mask_secret(password)}@{host}"

    def _log_ffmpeg_errors(self):
        """
        Continuously logs FFmpeg's stderr for debugging purposes, only if debug mode is enabled.
        """
        process = self.ffmpeg_process
        if process is None or process.stderr is None:
            return
        try:
            for line in iter(process.stderr.readline, b""):
                if line:
                    logger.debug(f"FFmpeg STDERR: {line.decode('utf-8', 'replace').strip()}")
                if self.stop_event.is_set():
                    break
        except (OSError, ValueError) as e:
            logger.error(f"Exception while logging FFmpeg stderr: {e}")

    def read_sample(self) -> bytes | None:
        """Reads one complete sample from FFmpeg, or None if the stream ended."""
        process = self.ffmpeg_process
        if process is None or process.stdout is None:
            return None
        chunks = []
        remaining = self._sample_size
        while remaining > 0:
            chunk = process.stdout.read(remaining)
            if not chunk:
                if remaining != self._sample_size:
                    logger.warning(
                        f"FFmpeg produced incomplete sample: got {self._sample_size - remaining} "
                        f"of {self._sample_size} bytes."
                    )
                return None
            chunks.append(chunk)
            remaining -= len(chunk)
        return b"".join(chunks)

    def _reader(self):
        """Reads samples until stopped, restarting FFmpeg when the stream drops."""
        logger.info(f"Reading {self._width}x{self._height} samples from {self._masked_url()}")
        try:
            while not self.stop_event.is_set():
                try:
                    self._spawn_ffmpeg()
                except OSError as e:
                    logger.error(f"Failed to start FFmpeg: {e}")
                    self._backoff()
                    continue

                while not self.stop_event.is_set():
                    sample = self.read_sample()
                    if sample is None:
                        break
                    self.samples_read += 1
                    self.retry_count = 0
                    self._deliver(sample)

                self._terminate_ffmpeg()
                if not self.stop_event.is_set():
                    logger.error("FFmpeg stream ended; reconnecting.")
                    self._backoff()
        finally:
            logger.info("Frame reader thread has exited.")

    def _deliver(self, sample: bytes) -> bool:
        """Hands a sample to the queue, waiting for room under the "block" policy."""
        waited = False
        while not self.stop_event.is_set():
            if self._queue.put(sample, timeout=self.PUT_TIMEOUT):
                return True
            if not waited:
                logger.warning("Frame queue full, reader waiting for the capture worker.")
                waited = True
        return False

    def _backoff(self) -> None:
        delay = min(2**self.retry_count, self.MAX_BACKOFF)
        self.retry_count += 1
        logger.info(f"Retrying FFmpeg in {delay} seconds (attempt {self.retry_count}).")
        self.stop_event.wait(delay)

    def _terminate_ffmpeg(self) -> None:
        with self._process_lock:
            process = self.ffmpeg_process
            self.ffmpeg_process = None
        if process is None:
            return
        process.terminate()
        try:
            process.wait(timeout=5)
        except subprocess.TimeoutExpired:
            logger.info("FFmpeg process did not terminate in time. Killing process...")
            process.kill()

    def stop(self) -> None:
        """Stops the reader and the FFmpeg process."""
        self.stop_event.set()
        self._terminate_ffmpeg()
        if (
            self.reader_thread
            and self.reader_thread.is_alive()
            and self.reader_thread != threading.current_thread()
        ):
            self.reader_thread.join(timeout=5)
            if self.reader_thread.is_alive():
                logger.info("Frame reader thread did not terminate within timeout.")
        logger.info("Frame source stopped.")
