"""
Archive Pipeline Interfaces.

This package defines the abstract interfaces between the core archive logic
and the transports around it. These interfaces enable:
- Clear service boundaries
- Dependency injection
- Independent testing of each component

ARCHITECTURE:
- core/ depends only on these interfaces
- Concrete implementations live in pipeline/services/ and camera/
"""

from pipeline.interfaces.directory import (
    Device,
    DirectoryError,
    DirectoryInterface,
    InvalidCredentialsError,
)
from pipeline.interfaces.frame_source import FrameSourceInterface
from pipeline.interfaces.progress import (
    ArchiveOutcome,
    OutcomeStatus,
    Progress,
    ProgressReporter,
)

__all__ = [
    # Interfaces
    "DirectoryInterface",
    "FrameSourceInterface",
    "ProgressReporter",
    # Data Classes
    "ArchiveOutcome",
    "Device",
    "OutcomeStatus",
    "Progress",
    # Errors
    "DirectoryError",
    "InvalidCredentialsError",
]
