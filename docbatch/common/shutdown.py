"""
Graceful shutdown wiring for long-running batch jobs.

Containers stop processes with SIGTERM (and terminals with SIGINT); the
hook lets a job stop its traversal between windows and report where to
resume.
"""

import logging
import signal
from typing import Callable, Optional, Tuple

logger = logging.getLogger(__name__)

SHUTDOWN_SIGNALS: Tuple[signal.Signals, ...] = (signal.SIGINT, signal.SIGTERM)


def register_for_graceful_shutdown(shutdown: Callable[[str, int], None]) -> None:
    """
    Install handlers for SIGINT and SIGTERM.

    Args:
        shutdown: Called as shutdown(signal_name, signal_number) when a
                  termination signal arrives; the caller decides what to do.
    """
    def _handler(signum, frame):
        name = signal.Signals(signum).name
        logger.info(f"Received {name}, running shutdown handler")
        shutdown(name, int(signum))

    for shutdown_signal in SHUTDOWN_SIGNALS:
        signal.signal(shutdown_signal, _handler)


class ShutdownFlag:
    """
    Callable flag flipped by a termination signal.

    Pass an instance as stop_requested to the paginator: it is checked
    before every fetch.

    Usage:
        flag = ShutdownFlag()
        register_for_graceful_shutdown(flag.request)
        work_page_by_page(store, "events", {}, 500, handler, stop_requested=flag)
    """

    def __init__(self):
        self.signal_name: Optional[str] = None
        self.signal_number: Optional[int] = None

    def request(self, signal_name: str = "manual", signal_number: int = 0) -> None:
        self.signal_name = signal_name
        self.signal_number = signal_number

    @property
    def requested(self) -> bool:
        return self.signal_name is not None

    def __call__(self) -> bool:
        return self.requested
