"""
Progress Service - Telegram Status Message.

Implements ProgressReporter by editing one chat message as an archive job
advances.
"""

from logging_config import get_logger
from pipeline.interfaces.progress import (
    ArchiveOutcome,
    OutcomeStatus,
    Progress,
    ProgressReporter,
)
from utils.telegram_client import TelegramClient

logger = get_logger(__name__)


def progress_text(progress: Progress) -> str:
    return f"Building zip: {progress.completed}/{progress.total}"


def outcome_text(outcome: ArchiveOutcome) -> str:
    if outcome.status is OutcomeStatus.SUCCEEDED:
        if outcome.skipped:
            return f"Uploading... ({len(outcome.skipped)} photo(s) could not be fetched)"
        return "Uploading..."
    if outcome.status is OutcomeStatus.CANCELLED:
        return "Zip cancelled."
    return f"Failed to build zip: {outcome.error}"


class TelegramProgressReporter(ProgressReporter):
    """
    Shows archive progress as a single editable message.

    The handle is the message_id of the status message.
    """

    def __init__(self, client: TelegramClient, chat_id):
        self._client = client
        self._chat_id = chat_id
        self.message_id = None

    def initial_message(self, progress: Progress):
        message = self._client.send_message(self._chat_id, progress_text(progress))
        self.message_id = message["message_id"]
        try:
            self._client.send_chat_action(self._chat_id, "upload_document")
        except Exception as e:
            logger.debug(f"Chat action failed: {e}")
        return self.message_id

    def notify(self, handle, progress: Progress) -> None:
        if handle is None:
            return
        self._client.edit_message_text(self._chat_id, handle, progress_text(progress))

    def finalize(self, handle, outcome: ArchiveOutcome) -> None:
        text = outcome_text(outcome)
        if handle is None:
            self._client.send_message(self._chat_id, text)
            return
        self._client.edit_message_text(self._chat_id, handle, text)

    def clear(self) -> None:
        """Deletes the status message once the archive has been delivered."""
        if self.message_id is None:
            return
        try:
            self._client.delete_message(self._chat_id, self.message_id)
        except Exception as e:
            logger.debug(f"Could not delete status message {self.message_id}: {e}")
