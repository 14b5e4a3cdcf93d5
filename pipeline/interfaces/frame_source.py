"""
Frame Source Interface - Raw Sample Acquisition.

Defines the contract for components that deliver raw planar YUV 4:2:0
samples from a live camera into the ingestion queue.
"""

from abc import ABC, abstractmethod


class FrameSourceInterface(ABC):
    """
    Interface for raw frame acquisition.

    Implementations should handle:
    - Connection to the camera stream
    - Reading fixed-size samples on a dedicated thread
    - Pushing samples into a FrameQueue
    """

    @abstractmethod
    def start(self) -> None:
        """
        Starts frame acquisition.

        Should be non-blocking; actual reading runs in a background thread.
        """
        pass

    @abstractmethod
    def stop(self) -> None:
        """
        Stops frame acquisition and releases resources.

        Should be idempotent (safe to call multiple times).
        """
        pass

    @abstractmethod
    def is_active(self) -> bool:
        """
        Checks if the source is running and delivering samples.

        Returns:
            True if the reader thread is alive.
        """
        pass

    @property
    @abstractmethod
    def frame_size(self) -> tuple[int, int]:
        """Returns (width, height) of delivered samples."""
        pass
