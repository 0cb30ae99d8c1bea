"""
Change notification relay.

Holds at most one listener. Delivery is synchronous and unbuffered: an
exception raised by the listener propagates to the caller of the mutation.
"""

from typing import Callable, List, Optional
import logging

from ..data.models.events import ContentChangeEvent
from ..data.models.records import ExternalRecord

logger = logging.getLogger(__name__)

ChangeListener = Callable[[ContentChangeEvent], None]


class ChangeNotificationRelay:
    """Forwards change events to the registered listener, if any."""

    def __init__(self, source: str = "airtable"):
        self.source = source
        self._listener: Optional[ChangeListener] = None

    @property
    def is_subscribed(self) -> bool:
        return self._listener is not None

    def subscribe(self, listener: ChangeListener) -> None:
        """Register ``listener``, replacing any previous one."""
        self._listener = listener
        logger.debug("Registered content change listener")

    def unsubscribe(self) -> None:
        self._listener = None
        logger.debug("Removed content change listener")

    def notify(
        self,
        event_type: str,
        records: Optional[List[ExternalRecord]] = None,
        deleted_ids: Optional[List[str]] = None,
    ) -> Optional[ContentChangeEvent]:
        """Build a change event and hand it to the listener."""
        if self._listener is None:
            return None
        event = ContentChangeEvent(
            event_type=event_type,
            source=self.source,
            records=records,
            deleted_ids=deleted_ids,
        )
        logger.debug(f"Emitting {event}")
        self._listener(event)
        return event
