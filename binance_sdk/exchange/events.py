"""
Publish/subscribe channel for stream status events.
"""

import asyncio
from typing import Callable, List

from .models import StatusEvent, StatusCategory
from ..utils.logger import get_logger

logger = get_logger(__name__)


class StatusEventBus:
    """
    Delivers every StatusEvent to every registered observer, in emission order.

    Observers may be plain functions or coroutine functions. A failing
    observer is logged and does not prevent delivery to the others.
    """

    def __init__(self):
        self._observers: List[Callable] = []

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def subscribe(self, callback: Callable[[StatusEvent], None]) -> None:
        if callback not in self._observers:
            self._observers.append(callback)

    def unsubscribe(self, callback: Callable[[StatusEvent], None]) -> None:
        if callback in self._observers:
            self._observers.remove(callback)

    async def publish(self, event: StatusEvent) -> None:
        if event.category in (StatusCategory.CONNECTION_STATUS_ERROR, StatusCategory.ENDPOINT_STATUS_ERROR):
            logger.warning("Status error", message=event.message, category=event.category.value)
        elif event.category != StatusCategory.ENDPOINT_DATA_RECEIVED:
            logger.debug("Status update", message=event.message, category=event.category.value)

        # Snapshot so observers may unsubscribe while being notified
        for callback in list(self._observers):
            try:
                if asyncio.iscoroutinefunction(callback):
                    await callback(event)
                else:
                    callback(event)
            except Exception as e:
                logger.error(
                    "Error in status observer",
                    category=event.category.value,
                    error=str(e),
                    exc_info=True
                )

    async def emit(self, message: str, category: StatusCategory, session_active: bool) -> None:
        """Build and publish a StatusEvent."""
        await self.publish(StatusEvent(message=message, session_active=session_active, category=category))
