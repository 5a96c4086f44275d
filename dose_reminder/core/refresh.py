"""Screen refresh signal.

Screens register a listener; anything that changes intake state server-side
bumps the counter so dependent screens re-fetch.
"""

import logging
from typing import Callable, List, Optional

logger = logging.getLogger("dose_reminder.refresh")


class RefreshBus:
    def __init__(self):
        self.refresh_count = 0
        self._listeners: List[Callable[[Optional[str]], None]] = []

    def subscribe(self, listener: Callable[[Optional[str]], None]) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener)

    def trigger(self, screen_name: Optional[str] = None) -> None:
        logger.debug(f"Triggering refresh for {screen_name or 'all screens'}")
        self.refresh_count += 1
        for listener in list(self._listeners):
            listener(screen_name)
