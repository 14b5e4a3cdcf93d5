"""
Archive Pipeline Services.

This package contains concrete implementations wired around the core.
Each service encapsulates a specific responsibility and can be tested independently.

ARCHITECTURE:
- Services implement interfaces from pipeline/interfaces/
- Services may use utils/ for transport clients
- main.py wires these services together
"""

from pipeline.services.bot_service import BotService
from pipeline.services.capture_service import CaptureService
from pipeline.services.progress_service import TelegramProgressReporter

__all__ = [
    "BotService",
    "CaptureService",
    "TelegramProgressReporter",
]
