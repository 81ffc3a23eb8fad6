import threading
from typing import Callable

from zonelink.constants import (
    FIRST_EVENT_RETRY_DELAY,
    SSDP_SEARCH_ADDRESSES,
    ZONELINK_VER,
)
from zonelink.exceptions import ZoneLinkTimeoutError
from zonelink.logger import logger
from zonelink.models import UPnPSubscription
from zonelink.server import CallbackServer, EventNotificationHandler, create_callback_app
from zonelink.types import FoundZonePlayerHandler, SerialNumber, SubscriptionId
from zonelink.upnp.device import ZonePlayer
from zonelink.upnp.discovery import DiscoveryEngine
from zonelink.upnp.events import EventDispatcher
from zonelink.upnp.subscriptions import SubscriptionManager, SubscriptionOptions
from zonelink.utils import ConcurrentRegistry, Scope, StoppableThread


class ZoneLink:
    def __init__(
        self,
        callback_host: str = "0.0.0.0",
        zone_player_factory: Callable[[str], ZonePlayer] = ZonePlayer.from_location,
        search_addresses: list[tuple[str, int]] = SSDP_SEARCH_ADDRESSES,
        first_event_retry_delay: float = FIRST_EVENT_RETRY_DELAY,
        dispatcher: EventDispatcher | None = None,
    ):
        """The main ZoneLink class.

        Responsibilities include:

            * Owning the discovery socket and the zone player registry.
            * Running the callback server which receives UPnP event
              notifications, for as long as the ZoneLink instance is open.
            * Making, renewing and cancelling event subscriptions, and
              tracking each subscription's event handler.

        The callback server is started on construction. Call close() (or use
        the instance as a context manager) to release the sockets.
        """
        logger.info(f"Initializing ZoneLink v{ZONELINK_VER}")

        self._zone_players: ConcurrentRegistry[SerialNumber, ZonePlayer] = (
            ConcurrentRegistry()
        )
        self._subscriptions: ConcurrentRegistry[SubscriptionId, UPnPSubscription] = (
            ConcurrentRegistry()
        )
        self._closed = False
        self._close_lock = threading.Lock()

        self._discovery = DiscoveryEngine(
            self._zone_players,
            zone_player_factory=zone_player_factory,
            search_addresses=search_addresses,
        )

        notification_handler = EventNotificationHandler(
            self._zone_players,
            self._subscriptions,
            dispatcher or EventDispatcher(),
            first_event_retry_delay=first_event_retry_delay,
        )

        try:
            self._callback_server = CallbackServer(
                create_callback_app(notification_handler), host=callback_host
            )
            self._callback_server.start()
        except OSError:
            self._discovery.close()
            raise

        self._subscription_manager = SubscriptionManager(
            self._subscriptions, lambda: self._callback_server.port
        )

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.close()

    @property
    def callback_port(self) -> int:
        return self._callback_server.port

    @property
    def zone_players(self) -> list[ZonePlayer]:
        """All registered coordinators."""
        return self._zone_players.values()

    @property
    def subscriptions(self) -> list[UPnPSubscription]:
        return self._subscriptions.values()

    def zone_player(self, serial_number: str) -> ZonePlayer | None:
        return self._zone_players.get(SerialNumber(serial_number))

    # -------------------------------------------------------------------------
    # Discovery

    def search(
        self, on_found: FoundZonePlayerHandler, scope: Scope | None = None
    ) -> StoppableThread:
        """Search for coordinators until the scope is cancelled.

        Without a scope the search continues until the ZoneLink is closed.
        """
        return self._discovery.search(scope or Scope(), on_found)

    def find_room(
        self, room: str, timeout: float = 5.0, scope: Scope | None = None
    ) -> ZonePlayer:
        """Find the coordinator for a room.

        An already registered coordinator is returned straight away. Otherwise
        a search is started and the first coordinator found for the room is
        returned. The search continues for the remainder of the scope (a new
        scope with the given timeout when none is provided).
        """
        zone_player = self._registered_room(room)

        if zone_player is not None:
            return zone_player

        scope = scope or Scope(timeout)
        room_found = threading.Event()

        def on_found(found: ZonePlayer):
            if found.room_name == room:
                room_found.set()

        scope.on_cancel(room_found.set)
        self.search(on_found, scope)

        room_found.wait(scope.remaining)
        zone_player = self._registered_room(room)

        if zone_player is None:
            raise ZoneLinkTimeoutError(f"Could not find room: {room}")

        return zone_player

    def _registered_room(self, room: str) -> ZonePlayer | None:
        return next(
            (
                zone_player
                for zone_player in self._zone_players.values()
                if zone_player.room_name == room
            ),
            None,
        )

    def register(self, zone_player: ZonePlayer) -> None:
        """Register a coordinator which was found without a search."""
        self._discovery.register(zone_player)

    # -------------------------------------------------------------------------
    # Subscriptions

    def subscribe(
        self, options: SubscriptionOptions, scope: Scope | None = None
    ) -> SubscriptionId:
        return self._subscription_manager.subscribe(options, scope)

    def renew(self, options: SubscriptionOptions, scope: Scope | None = None) -> None:
        self._subscription_manager.renew(options, scope)

    def unsubscribe(
        self, options: SubscriptionOptions, scope: Scope | None = None
    ) -> None:
        self._subscription_manager.unsubscribe(options, scope)

    def forget_subscription(self, sid: str) -> UPnPSubscription | None:
        """Stop routing events for a subscription to its handler.

        Cancelling a subscription keeps its handler so notifications already
        in flight are still delivered; this removes it.
        """
        return self._subscriptions.pop(SubscriptionId(sid))

    # -------------------------------------------------------------------------

    def close(self) -> None:
        with self._close_lock:
            if self._closed:
                return

            self._closed = True

        logger.info("Closing ZoneLink")
        self._discovery.close()
        self._callback_server.stop()
