"""
camvault Core Package.

This package contains the core logic of the archive: the time-ordered photo
index, the query predicate language and the archive job that packages a
selection into a zip file.

ARCHITECTURE RULES:
- core/ modules may only import from:
  - Python standard library
  - utils/ (storage adapters)
  - pipeline/interfaces/ (contracts, never concrete services)
  - config and logging_config

- core/ modules MUST NOT import from:
  - pipeline/services/ (no Telegram or camera transport)
  - requests or any network client
"""

__all__ = [
    "archive_job",
    "frame_queue",
    "photo_index",
    "predicate",
]
