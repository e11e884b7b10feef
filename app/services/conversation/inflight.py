import asyncio
from typing import Dict, Optional

from app.config import settings
from app.logging import setup_logger


class InFlightTracker:
    """
    Marks users whose message is being answered.

    A marker stays set for ``release_delay`` seconds after the reply is sent,
    so a redelivered copy of the same message is dropped too.
    """

    def __init__(self, release_delay: Optional[float] = None):
        self.logger = setup_logger(__name__)
        self.release_delay = (
            settings.INFLIGHT_RELEASE_SECONDS if release_delay is None else release_delay
        )
        self._markers: Dict[str, Optional[asyncio.TimerHandle]] = {}

    def try_acquire(self, user_id: str) -> bool:
        """Set the marker; False if it was already set."""
        if user_id in self._markers:
            self.logger.info(f"Reply already in flight for {user_id}, dropping message")
            return False
        self._markers[user_id] = None
        return True

    def is_set(self, user_id: str) -> bool:
        return user_id in self._markers

    def release_later(self, user_id: str) -> None:
        """Clear the marker after the release delay."""
        if user_id not in self._markers:
            return
        if self.release_delay <= 0:
            self._markers.pop(user_id, None)
            return

        loop = asyncio.get_running_loop()
        self._markers[user_id] = loop.call_later(
            self.release_delay, self._markers.pop, user_id, None
        )

    def clear(self) -> None:
        """Drop every marker, cancelling pending releases."""
        for handle in self._markers.values():
            if handle is not None:
                handle.cancel()
        self._markers.clear()

    def __len__(self) -> int:
        return len(self._markers)
