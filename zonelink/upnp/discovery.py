"""SSDP discovery of zone player group coordinators.

An M-SEARCH datagram is sent to the SSDP multicast and broadcast addresses
from a UDP socket owned by the DiscoveryEngine. Responses are read on a
background thread, decoded with async_upnp_client's SSDP codec, resolved into
ZonePlayers, and every coordinator not seen before is added to the zone player
registry and announced to the caller.
"""

import socket
import threading
from typing import Callable

from async_upnp_client.ssdp import decode_ssdp_packet
from async_upnp_client.utils import CaseInsensitiveDict
import requests

from zonelink.constants import (
    SSDP_MAX_DATAGRAM,
    SSDP_MULTICAST_ADDRESS,
    SSDP_MX,
    SSDP_READ_INTERVAL,
    SSDP_SEARCH_ADDRESSES,
    SSDP_SEARCH_TARGET,
)
from zonelink.exceptions import ZoneLinkDeviceError, ZoneLinkError
from zonelink.logger import logger
from zonelink.types import FoundZonePlayerHandler, SerialNumber
from zonelink.upnp.device import ZonePlayer
from zonelink.utils import ConcurrentRegistry, Scope, StoppableThread

# Zone players expect this exact datagram (note the space after each colon,
# which async_upnp_client's build_ssdp_search_packet omits).
M_SEARCH = (
    "M-SEARCH * HTTP/1.1\r\n"
    + f"HOST: {SSDP_MULTICAST_ADDRESS[0]}:{SSDP_MULTICAST_ADDRESS[1]}\r\n"
    + 'MAN: "ssdp:discover"\r\n'
    + f"MX: {SSDP_MX}\r\n"
    + f"ST: {SSDP_SEARCH_TARGET}\r\n"
    + "\r\n"
).encode("ascii")


def parse_ssdp_response(
    data: bytes,
    local_address: tuple[str, int],
    remote_address: tuple[str, int],
) -> CaseInsensitiveDict:
    """Decode an SSDP search response datagram into its headers.

    Raises ValueError if the datagram can't be decoded or is not an HTTP
    response.
    """
    try:
        status_line, headers = decode_ssdp_packet(data, local_address, remote_address)
    except Exception as e:
        raise ValueError(f"Could not decode SSDP datagram: {e}") from e

    if not status_line.startswith("HTTP/"):
        raise ValueError(f"Not an HTTP response: {status_line[:40]!r}")

    return headers


class SearchResponseReader(StoppableThread):
    def __init__(
        self,
        engine: "DiscoveryEngine",
        scope: Scope,
        on_found: FoundZonePlayerHandler,
        *args,
        **kwargs,
    ):
        """Thread to read SSDP search responses until its scope is cancelled.

        The reader also ends when stopped, or when the engine is closed.
        """
        super().__init__(*args, **kwargs)

        self.name = "ZoneLink-DiscoveryReader"
        self.daemon = True

        self._engine = engine
        self._scope = scope
        self._on_found = on_found

    def run(self):
        while not (self.stopped() or self._scope.cancelled or self._engine.closed):
            try:
                data, address = self._engine.socket.recvfrom(SSDP_MAX_DATAGRAM)
            except TimeoutError:
                continue
            except OSError as e:
                if not self._engine.closed:
                    logger.warning(f"Discovery socket read failed: {e}")

                break

            logger.debug(f"SSDP response from {address[0]}:{address[1]}")

            try:
                self._engine.handle_response(data, address, self._on_found)
            except Exception:
                logger.exception(
                    f"Could not handle SSDP response from {address[0]}:{address[1]}"
                )

        logger.debug("Discovery reader ended")


class DiscoveryEngine:
    """Find zone player coordinators on the local network.

    Discovered coordinators are stored in the given registry, keyed by serial
    number. The first zone player stored for a serial number wins; only the
    search which stored it announces it.
    """

    def __init__(
        self,
        zone_players: ConcurrentRegistry[SerialNumber, ZonePlayer],
        zone_player_factory: Callable[[str], ZonePlayer] = ZonePlayer.from_location,
        search_addresses: list[tuple[str, int]] = SSDP_SEARCH_ADDRESSES,
    ):
        self._zone_players = zone_players
        self._zone_player_factory = zone_player_factory
        self._search_addresses = list(search_addresses)

        # Locations which have already been resolved to a registered zone player
        self._known_locations: set[str] = set()
        self._known_locations_lock = threading.Lock()

        self._closed = threading.Event()

        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_BROADCAST, 1)
        self._socket.bind(("0.0.0.0", 0))
        self._socket.settimeout(SSDP_READ_INTERVAL)
        self._local_address = self._socket.getsockname()

    @property
    def socket(self) -> socket.socket:
        return self._socket

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def search(self, scope: Scope, on_found: FoundZonePlayerHandler) -> StoppableThread:
        """Search for coordinators until the scope is cancelled.

        Returns the (already started) response reader thread. on_found is
        invoked on the reader thread once for each newly registered
        coordinator.
        """
        reader = SearchResponseReader(self, scope, on_found)
        reader.start()

        try:
            for address in self._search_addresses:
                self._socket.sendto(M_SEARCH, address)
        except OSError:
            reader.stop()
            raise

        logger.info(
            f"Searching for zone players via {len(self._search_addresses)} "
            + "SSDP address(es)"
        )

        return reader

    def handle_response(
        self,
        data: bytes,
        address: tuple[str, int],
        on_found: FoundZonePlayerHandler,
    ) -> ZonePlayer | None:
        """Resolve a single search response received from address.

        Returns the zone player if this call registered it; otherwise None.
        Unexpected failures (e.g. from a zone player's coordinator check)
        propagate; the response reader logs them and moves on.
        """
        try:
            headers = parse_ssdp_response(data, self._local_address, address)
        except ValueError as e:
            logger.debug(f"Ignoring SSDP datagram: {e}")
            return None

        location = headers.get("location")

        if not location:
            logger.debug("Ignoring SSDP response without a location")
            return None

        with self._known_locations_lock:
            if location in self._known_locations:
                return None

        try:
            zone_player = self._zone_player_factory(location)
        except (ZoneLinkError, requests.RequestException, OSError, ValueError) as e:
            logger.warning(f"Could not resolve zone player at {location}: {e}")
            return None

        if not zone_player.is_coordinator():
            logger.debug(f"Ignoring non-coordinator at {location}")
            return None

        stored, loaded = self._zone_players.load_or_store(
            zone_player.serial_number, zone_player
        )

        with self._known_locations_lock:
            self._known_locations.add(location)

        if loaded:
            return None

        logger.info(
            f"Found zone player '{stored.room_name}' ({stored.model_name}) "
            + f"at {location}"
        )

        try:
            on_found(stored)
        except Exception:
            logger.exception(f"Found zone player handler failed for {location}")

        return stored

    def register(self, zone_player: ZonePlayer) -> None:
        """Manually add a coordinator to the registry."""
        if not zone_player.is_coordinator():
            raise ZoneLinkDeviceError(
                f"Zone player {zone_player.serial_number} is not a coordinator"
            )

        _, loaded = self._zone_players.load_or_store(
            zone_player.serial_number, zone_player
        )

        if loaded:
            raise ZoneLinkDeviceError(
                f"Zone player {zone_player.serial_number} is already registered"
            )

        with self._known_locations_lock:
            self._known_locations.add(zone_player.location)

        logger.info(
            f"Registered zone player '{zone_player.room_name}' at "
            + f"{zone_player.location}"
        )

    def close(self) -> None:
        if self.closed:
            return

        self._closed.set()
        self._socket.close()
