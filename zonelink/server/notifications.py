import asyncio

from starlette.concurrency import run_in_threadpool

from zonelink.constants import FIRST_EVENT_RETRY_DELAY
from zonelink.logger import logger
from zonelink.models import UPnPSubscription
from zonelink.types import EventHandler, SerialNumber, SubscriptionId
from zonelink.upnp.device import ZonePlayer
from zonelink.upnp.events import EventDispatcher
from zonelink.utils import ConcurrentRegistry


def _ignore_event(event) -> None:
    pass


class EventNotificationHandler:
    """Route incoming NOTIFY requests to subscription event handlers.

    Flow of a notification:

    NOTIFY <event path>?sn=<serial number> (SID, SEQ headers)
      -> zone player lookup (by serial number)
          -> service lookup (by event path) -> service.parse_event(body)
          -> event handler lookup (by SID)
              -> EventDispatcher.dispatch_all() on a worker thread
    """

    def __init__(
        self,
        zone_players: ConcurrentRegistry[SerialNumber, ZonePlayer],
        subscriptions: ConcurrentRegistry[SubscriptionId, UPnPSubscription],
        dispatcher: EventDispatcher,
        first_event_retry_delay: float = FIRST_EVENT_RETRY_DELAY,
    ):
        self._zone_players = zone_players
        self._subscriptions = subscriptions
        self._dispatcher = dispatcher
        self._first_event_retry_delay = first_event_retry_delay

    def _handler_for(self, sid: str | None) -> EventHandler | None:
        if not sid:
            return None

        subscription = self._subscriptions.get(SubscriptionId(sid))

        return None if subscription is None else subscription.handler

    async def handle(
        self,
        serial_number: str | None,
        path: str,
        sid: str | None,
        seq: str | None,
        body: bytes,
    ) -> int:
        """Handle one notification. Returns the HTTP status to respond with."""
        zone_player = (
            self._zone_players.get(SerialNumber(serial_number))
            if serial_number
            else None
        )

        if zone_player is None:
            logger.warning(
                f"Ignoring event notification for unknown zone player: {serial_number}"
            )
            return 404

        service = zone_player.service_for_event_path(path)

        if service is None:
            logger.warning(
                f"No {zone_player.serial_number} service for event path {path}"
            )
            property_values = iter(())
        else:
            property_values = service.parse_event(body)

        handler = self._handler_for(sid)

        # The first event can arrive before the SUBSCRIBE response has been
        # processed (and the handler registered).
        if handler is None and seq == "0":
            await asyncio.sleep(self._first_event_retry_delay)
            handler = self._handler_for(sid)

        if handler is None:
            logger.warning(f"No event handler for subscription {sid}; ignoring")
            handler = _ignore_event

        await run_in_threadpool(self._dispatcher.dispatch_all, property_values, handler)

        return 200
