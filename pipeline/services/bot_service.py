"""
Bot Service - Operator Queries over Telegram.

Long-polls the Bot API. Text messages posted in the configured group are
treated as archive queries: matching photos are zipped and sent to the sender.
Inline queries are answered with a few matching photos directly.
"""

import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor

from core.archive_job import ArchiveError, ArchiveJob
from core.photo_index import PhotoIndex
from core.predicate import parse_query
from logging_config import get_logger
from pipeline.services.progress_service import TelegramProgressReporter
from utils.telegram_client import TelegramClient, TelegramError

logger = get_logger(__name__)

NO_MATCH_TEXT = "No photos match that query."


class BotService:
    """
    Dispatches Telegram updates to query handlers.

    Each query runs on a worker thread so a slow archive never blocks polling.
    Exceptions in handlers are logged and never stop the poll loop.
    """

    def __init__(
        self,
        client: TelegramClient,
        photo_index: PhotoIndex,
        group_id,
        max_query_workers: int = 4,
        archive_max_workers: int | None = None,
        archive_failure_policy: str = "abort",
        inline_results_limit: int = 10,
        poll_timeout: int = 30,
    ):
        self._client = client
        self._index = photo_index
        self._group_id = group_id
        self._archive_max_workers = archive_max_workers
        self._archive_failure_policy = archive_failure_policy
        self._inline_results_limit = inline_results_limit
        self._poll_timeout = poll_timeout

        self._offset: int | None = None
        self._stop_event = threading.Event()
        self._poll_thread: threading.Thread | None = None
        self._executor = ThreadPoolExecutor(
            max_workers=max_query_workers, thread_name_prefix="QueryWorker"
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        if self._poll_thread and self._poll_thread.is_alive():
            logger.warning("BotService already running")
            return
        self._stop_event.clear()
        self._poll_thread = threading.Thread(
            target=self._poll_loop, name="TelegramPoller", daemon=True
        )
        self._poll_thread.start()
        logger.info("BotService started")

    def stop(self) -> None:
        """Stops polling and cancels running archive jobs at their next checkpoint."""
        self._stop_event.set()
        if self._poll_thread:
            self._poll_thread.join(timeout=self._poll_timeout + 5)
        self._executor.shutdown(wait=True, cancel_futures=True)
        logger.info("BotService stopped")

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def _poll_loop(self) -> None:
        failures = 0
        while not self._stop_event.is_set():
            try:
                updates = self._client.get_updates(
                    offset=self._offset, timeout=self._poll_timeout
                )
                failures = 0
            except TelegramError as e:
                failures += 1
                delay = min(2**failures, 60)
                logger.error(f"Polling failed: {e}. Retrying in {delay}s")
                self._stop_event.wait(delay)
                continue
            for update in updates:
                self.dispatch(update)

    def dispatch(self, update: dict) -> None:
        """Routes one update; advances the polling offset past it."""
        update_id = update.get("update_id")
        if update_id is not None:
            self._offset = max(self._offset or 0, update_id + 1)

        if "message" in update:
            message = update["message"]
            text = message.get("text")
            if text is None:
                return
            if message.get("chat", {}).get("id") != self._group_id:
                return
            sender = message.get("from") or {}
            reply_to = sender.get("id", self._group_id)
            self._submit(self.handle_query, text, reply_to)
        elif "inline_query" in update:
            inline_query = update["inline_query"]
            self._submit(
                self.handle_inline_query, inline_query["id"], inline_query.get("query", "")
            )

    def _submit(self, func, *args) -> None:
        future = self._executor.submit(func, *args)
        future.add_done_callback(self._log_handler_error)

    @staticmethod
    def _log_handler_error(future) -> None:
        if future.cancelled():
            return
        error = future.exception()
        if error is not None:
            logger.error(f"Query handler failed: {error}", exc_info=error)

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def handle_query(self, text: str, chat_id) -> bool:
        """
        Builds and delivers the archive for one query.

        Returns:
            True if an archive was sent.
        """
        started = time.time()
        selection = self._index.select(parse_query(text))
        logger.info(f"Query {text!r} matched {len(selection)} photos")
        if not selection:
            self._client.send_message(chat_id, NO_MATCH_TEXT)
            return False

        reporter = TelegramProgressReporter(self._client, chat_id)
        job = ArchiveJob(
            selection,
            self._client.download_file,
            reporter,
            max_workers=self._archive_max_workers,
            failure_policy=self._archive_failure_policy,
        )
        try:
            archive = job.run(cancel_event=self._stop_event)
        except ArchiveError as e:
            logger.warning(f"Archive for {text!r} not delivered: {e}")
            return False

        try:
            self._client.send_document(chat_id, archive, f"{uuid.uuid4().hex}.zip")
        except TelegramError as e:
            logger.error(f"Archive upload failed: {e}")
            self._client.send_message(chat_id, "Failed to upload zip.")
            return False

        reporter.clear()
        logger.info(f"Archive for {text!r} delivered in {time.time() - started:.1f}s")
        return True

    def handle_inline_query(self, inline_query_id: str, text: str) -> None:
        """Answers with matching photos; blank text shows the most recent ones."""
        if text.strip():
            matches = self._index.select(parse_query(text))[: self._inline_results_limit]
        else:
            matches = self._index.latest(self._inline_results_limit)
        self._client.answer_inline_query(
            inline_query_id, [record.reference for record in matches]
        )
