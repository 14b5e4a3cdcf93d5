# ------------------------------------------------------------------------------
# Main Script: camera capture into the photo index and Telegram query bot
# main.py
# ------------------------------------------------------------------------------
import atexit
import sys
import time

from config import get_config
from logging_config import get_logger

logger = get_logger(__name__)

from camera.ezviz_directory import EzvizDirectory
from camera.frame_source import FFmpegFrameSource, camera_stream_url
from core.frame_queue import FrameQueue
from core.photo_index import IndexCorruptionError, PhotoIndex
from pipeline.interfaces.directory import DirectoryError
from pipeline.services.bot_service import BotService
from pipeline.services.capture_service import CaptureService
from utils.settings import mask_secret
from utils.telegram_client import TelegramClient


def _require(config: dict, *keys: str) -> None:
    missing = [key for key in keys if not config.get(key)]
    if missing:
        logger.critical(f"Missing required configuration: {', '.join(missing)}")
        sys.exit(1)


def main() -> None:
    config = get_config()
    _require(
        config,
        "TELEGRAM_BOT_TOKEN",
        "TELEGRAM_GROUP_ID",
        "EZVIZ_ACCOUNT",
        "EZVIZ_PASSWORD",
        "EZVIZ_VERIFICATION_CODE",
    )
    logger.info(f"Debug mode is {'enabled' if config['DEBUG_MODE'] else 'disabled'}.")
    logger.info(
        f"Bot token {mask_secret(config['TELEGRAM_BOT_TOKEN'])}, "
        f"group {config['TELEGRAM_GROUP_ID']}, output dir {config['OUTPUT_DIR']}"
    )

    # -----------------------------
    # Photo index (fatal if the store is unreadable)
    # -----------------------------
    try:
        photo_index = PhotoIndex()
        photo_index.rebuild()
    except IndexCorruptionError as e:
        logger.critical(f"Refusing to start: {e}")
        sys.exit(1)

    client = TelegramClient(config["TELEGRAM_BOT_TOKEN"])
    group_id = config["TELEGRAM_GROUP_ID"]

    # -----------------------------
    # Query bot
    # -----------------------------
    bot = BotService(
        client,
        photo_index,
        group_id,
        archive_max_workers=config["ARCHIVE_MAX_WORKERS"],
        archive_failure_policy=config["ARCHIVE_FAILURE_POLICY"],
        inline_results_limit=config["INLINE_RESULTS_LIMIT"],
    )
    bot.start()
    atexit.register(bot.stop)

    # -----------------------------
    # Camera lookup and capture
    # -----------------------------
    try:
        directory = EzvizDirectory(config["EZVIZ_ACCOUNT"], config["EZVIZ_PASSWORD"])
        devices = directory.list_devices()
    except DirectoryError as e:
        logger.critical(f"Camera lookup failed: {e}")
        sys.exit(1)
    if not devices:
        logger.critical("No cameras found on the EZVIZ account.")
        sys.exit(1)
    device = devices[0]
    logger.info(f"Using camera '{device.name}' at {device.address}")

    frame_queue = FrameQueue(
        maxsize=config["FRAME_QUEUE_MAXSIZE"], policy=config["FRAME_QUEUE_POLICY"]
    )
    source = FFmpegFrameSource(
        camera_stream_url(device.address, config["EZVIZ_VERIFICATION_CODE"]),
        frame_queue,
        width=config["FRAME_WIDTH"],
        height=config["FRAME_HEIGHT"],
        max_fps=config["CAPTURE_FPS"],
        debug=config["DEBUG_MODE"],
    )
    capture = CaptureService(
        frame_queue,
        photo_index,
        lambda png: client.send_photo(group_id, png),
        width=config["FRAME_WIDTH"],
        height=config["FRAME_HEIGHT"],
        capture_frequency=config["CAPTURE_FREQUENCY"],
    )
    capture.start()
    source.start()
    atexit.register(capture.stop)
    atexit.register(source.stop)

    try:
        while True:
            time.sleep(60)
            logger.debug(
                f"Captured {capture.captured_count} photos, index holds {len(photo_index)}, "
                f"dropped {frame_queue.dropped_count} samples"
            )
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received. Shutting down...")


if __name__ == "__main__":
    main()
