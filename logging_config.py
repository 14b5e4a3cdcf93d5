# logging_config.py
import logging
import os

# Read DEBUG_MODE straight from the environment so importing this module never
# touches the filesystem (config.load_config reads OUTPUT_DIR/settings.yaml).
DEBUG_MODE = os.getenv("DEBUG_MODE", "False").lower() == "true"

# Configure logging once for the entire application.
logging.basicConfig(
    level=logging.DEBUG if DEBUG_MODE else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)

def get_logger(name: str) -> logging.Logger:
    """
    Returns a logger with the given name.
    """
    return logging.getLogger(name)
