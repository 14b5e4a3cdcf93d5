import json

import requests

from logging_config import get_logger

logger = get_logger(__name__)

API_BASE = "https://api.telegram.org"
REQUEST_TIMEOUT = 30


class TelegramError(RuntimeError):
    """Raised when the Bot API rejects a call or cannot be reached."""


class TelegramClient:
    """
    Thin client for the Telegram Bot HTTP API.

    Every call returns the decoded "result" field and raises TelegramError
    for transport failures and non-ok responses.
    """

    def __init__(self, token: str, session: requests.Session | None = None):
        if not token:
            raise ValueError("TELEGRAM_BOT_TOKEN is missing")
        self._token = token
        self._http = session or requests.Session()

    def _call(self, method: str, data=None, files=None, timeout: float = REQUEST_TIMEOUT):
        url = f"{API_BASE}/bot{self._token}/{method}"
        try:
            response = self._http.post(url, data=data, files=files, timeout=timeout)
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise TelegramError(f"{method} failed: {e}") from e
        if not payload.get("ok"):
            raise TelegramError(f"{method} failed: {payload.get('description', 'unknown error')}")
        return payload.get("result")

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def get_updates(self, offset: int | None = None, timeout: int = 30) -> list[dict]:
        """Long-polls for updates newer than offset."""
        data = {
            "timeout": timeout,
            "allowed_updates": json.dumps(["message", "inline_query"]),
        }
        if offset is not None:
            data["offset"] = offset
        return self._call("getUpdates", data=data, timeout=timeout + REQUEST_TIMEOUT) or []

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def send_message(self, chat_id, text: str) -> dict:
        return self._call("sendMessage", data={"chat_id": chat_id, "text": text})

    def edit_message_text(self, chat_id, message_id: int, text: str) -> dict:
        return self._call(
            "editMessageText",
            data={"chat_id": chat_id, "message_id": message_id, "text": text},
        )

    def delete_message(self, chat_id, message_id: int) -> bool:
        return self._call(
            "deleteMessage", data={"chat_id": chat_id, "message_id": message_id}
        )

    def send_chat_action(self, chat_id, action: str) -> bool:
        return self._call("sendChatAction", data={"chat_id": chat_id, "action": action})

    # ------------------------------------------------------------------
    # Media
    # ------------------------------------------------------------------

    def send_photo(self, chat_id, photo: bytes, filename: str = "camera.png") -> str:
        """
        Uploads a photo and returns the file_id of its widest stored size.
        """
        message = self._call(
            "sendPhoto",
            data={"chat_id": chat_id},
            files={"photo": (filename, photo)},
            timeout=REQUEST_TIMEOUT * 4,
        )
        sizes = (message or {}).get("photo") or []
        if not sizes:
            raise TelegramError("sendPhoto returned no photo sizes")
        widest = max(sizes, key=lambda size: size.get("width", 0))
        return widest["file_id"]

    def send_document(self, chat_id, document: bytes, filename: str) -> dict:
        return self._call(
            "sendDocument",
            data={"chat_id": chat_id},
            files={"document": (filename, document)},
            timeout=REQUEST_TIMEOUT * 10,
        )

    def get_file(self, file_id: str) -> dict:
        return self._call("getFile", data={"file_id": file_id})

    def download_file(self, file_id: str) -> bytes:
        """Resolves a file_id and downloads its bytes."""
        file_path = self.get_file(file_id).get("file_path")
        if not file_path:
            raise TelegramError(f"getFile returned no path for {file_id}")
        try:
            response = self._http.get(
                f"{API_BASE}/file/bot{self._token}/{file_path}", timeout=REQUEST_TIMEOUT * 2
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise TelegramError(f"Download of {file_id} failed: {e}") from e
        return response.content

    # ------------------------------------------------------------------
    # Inline mode
    # ------------------------------------------------------------------

    def answer_inline_query(self, inline_query_id: str, photo_file_ids: list[str]) -> bool:
        results = [
            {"type": "photo", "id": str(idx), "photo_file_id": file_id}
            for idx, file_id in enumerate(photo_file_ids)
        ]
        return self._call(
            "answerInlineQuery",
            data={"inline_query_id": inline_query_id, "results": json.dumps(results)},
        )
