"""
Logging for docbatch traversals.

Every line a traversal writes carries its run id and collection, so the
windows of one walk can be picked out of interleaved job output:

    2024-05-02 10:00:01 [INFO] docbatch.repositories.paginator: [run:3f2a9c1e] [events] Traversal complete: 4 window(s), 1873 document(s)
"""

import logging
import os
import sys
from typing import Any, Optional

SIMPLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
JSON_FORMAT = '{"time": "%(asctime)s", "level": "%(levelname)s", "name": "%(name)s", "message": "%(message)s"}'


class BatchLogger:
    """
    Logger bound to one traversal.

    The generic level methods prefix the message with [run:<8 chars>] and
    [<collection>]; window/finished/interrupted/aborted write the
    traversal's milestone lines.
    """

    def __init__(self, name: str, run_id: Optional[str] = None, collection: Optional[str] = None):
        self.logger = logging.getLogger(name)
        self.run_id = run_id
        self.collection = collection

    def _format_message(self, message: str) -> str:
        prefix_parts = []
        if self.run_id:
            prefix_parts.append(f"[run:{self.run_id[:8]}]")
        if self.collection:
            prefix_parts.append(f"[{self.collection}]")

        if prefix_parts:
            return f"{' '.join(prefix_parts)} {message}"
        return message

    def debug(self, message: str, **kwargs):
        self.logger.debug(self._format_message(message), **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(self._format_message(message), **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(self._format_message(message), **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(self._format_message(message), **kwargs)

    def window(self, page: int, size: int, last_key: Any) -> None:
        """One handled window (DEBUG: a long walk writes one per page)."""
        self.debug(f"Window {page}: {size} document(s), last key {last_key!r}")

    def finished(self, pages: int, documents: int) -> None:
        self.info(f"Traversal complete: {pages} window(s), {documents} document(s)")

    def interrupted(self, pages: int, resume_key: Any) -> None:
        self.warning(
            f"Traversal stopped on request after {pages} window(s); resume after key {resume_key!r}"
        )

    def aborted(self, pages: int, last_key: Any, reason: str) -> None:
        self.error(f"Traversal aborted after {pages} window(s) at key {last_key!r}: {reason}")


def setup_logging(level: Optional[str] = None, format: Optional[str] = None) -> None:
    """
    Configure the root logger with one stdout handler.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Defaults to LOG_LEVEL, then INFO.
               DEBUG turns on the per-window lines.
        format: "simple" or "json". Defaults to LOG_FORMAT, then simple.
    """
    level = level or os.getenv("LOG_LEVEL", "INFO")
    format = format or os.getenv("LOG_FORMAT", "simple")
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if format == "json":
        handler.setFormatter(logging.Formatter(JSON_FORMAT))
    else:
        handler.setFormatter(logging.Formatter(SIMPLE_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # Driver heartbeats and topology events drown out the window lines
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def get_logger(name: str, run_id: Optional[str] = None, collection: Optional[str] = None) -> BatchLogger:
    """BatchLogger for module name, tagged with run_id and collection when given."""
    return BatchLogger(name, run_id, collection)
