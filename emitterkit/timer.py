"""Running an action periodically on a background thread."""

from __future__ import annotations

import logging
import threading
from datetime import timedelta
from typing import Callable, Union

_log = logging.getLogger(__name__)


def repeat(interval: Union[float, timedelta], action: Callable[[], object]) -> Callable[[], None]:
    """Run ``action`` now and then every ``interval`` seconds until cancelled.

    Exceptions raised by the action are logged and do not stop the repetition.
    Returns a function that cancels further runs.
    """
    seconds = interval.total_seconds() if isinstance(interval, timedelta) else float(interval)
    if seconds <= 0:
        raise ValueError("interval must be positive")

    stop = threading.Event()

    def safe_action() -> None:
        try:
            action()
        except Exception:
            _log.exception("panic recovered")

    safe_action()

    def loop() -> None:
        while not stop.wait(seconds):
            safe_action()

    threading.Thread(target=loop, name="repeat", daemon=True).start()
    return stop.set