import socket
import threading
from xml.sax.saxutils import escape

import pytest
from requests.structures import CaseInsensitiveDict

from zonelink.upnp.device import ZonePlayer, parse_device_description
from zonelink.utils import ConcurrentRegistry

LOCATION = "http://10.0.0.5:1400/xml/device_description.xml"
SERIAL_NUMBER = "00-0E-58-A0-12-34:5"
UDN = "uuid:RINCON_000E58A0123401400"

DEVICE_DESCRIPTION_TEMPLATE = """<?xml version="1.0" encoding="utf-8"?>
<root xmlns="urn:schemas-upnp-org:device-1-0">
  <specVersion><major>1</major><minor>0</minor></specVersion>
  <device>
    <deviceType>urn:schemas-upnp-org:device:ZonePlayer:1</deviceType>
    <friendlyName>10.0.0.5 - Sonos One - RINCON_000E58A0123401400</friendlyName>
    <manufacturer>Sonos, Inc.</manufacturer>
    <modelNumber>S18</modelNumber>
    <modelDescription>Sonos One</modelDescription>
    <modelName>Sonos One</modelName>
    <softwareVersion>78.1-52020</softwareVersion>
    <hardwareVersion>1.24.1.10-2.2</hardwareVersion>
    <serialNum>{serial_number}</serialNum>
    <MACAddress>00:0E:58:A0:12:34</MACAddress>
    <UDN>{udn}</UDN>
    <roomName>{room_name}</roomName>
    <displayName>One</displayName>
    <serviceList>
      <service>
        <serviceType>urn:schemas-upnp-org:service:AlarmClock:1</serviceType>
        <serviceId>urn:upnp-org:serviceId:AlarmClock</serviceId>
        <controlURL>/AlarmClock/Control</controlURL>
        <eventSubURL>/AlarmClock/Event</eventSubURL>
        <SCPDURL>/xml/AlarmClock1.xml</SCPDURL>
      </service>
    </serviceList>
    <deviceList>
      <device>
        <deviceType>urn:schemas-upnp-org:device:MediaRenderer:1</deviceType>
        <serviceList>
          <service>
            <serviceType>urn:schemas-upnp-org:service:AVTransport:1</serviceType>
            <serviceId>urn:upnp-org:serviceId:AVTransport</serviceId>
            <controlURL>/MediaRenderer/AVTransport/Control</controlURL>
            <eventSubURL>/MediaRenderer/AVTransport/Event</eventSubURL>
            <SCPDURL>/xml/AVTransport1.xml</SCPDURL>
          </service>
        </serviceList>
      </device>
    </deviceList>
  </device>
</root>
"""

AV_TRANSPORT_LAST_CHANGE = (
    '<Event xmlns="urn:schemas-upnp-org:metadata-1-0/AVT/" '
    + 'xmlns:r="urn:schemas-rinconnetworks-com:metadata-1-0/">'
    + '<InstanceID val="0">'
    + '<TransportState val="PLAYING"/>'
    + '<CurrentPlayMode val="NORMAL"/>'
    + '<NumberOfTracks val="12"/>'
    + '<CurrentTrack val="3"/>'
    + '<CurrentSection val=""/>'
    + '<CurrentTrackURI val="x-sonos-http:track.mp3"/>'
    + '<CurrentTrackDuration val="0:03:41"/>'
    + '<r:SleepTimerGeneration val="0"/>'
    + "</InstanceID>"
    + "</Event>"
)

RENDERING_CONTROL_LAST_CHANGE = (
    '<Event xmlns="urn:schemas-upnp-org:metadata-1-0/RCS/">'
    + '<InstanceID val="0">'
    + '<Volume channel="Master" val="32"/>'
    + '<Volume channel="LF" val="100"/>'
    + '<Mute channel="Master" val="0"/>'
    + '<Loudness channel="Master" val="1"/>'
    + '<Bass val="2"/>'
    + '<Treble val="-1"/>'
    + '<OutputFixed val="0"/>'
    + "</InstanceID>"
    + "</Event>"
)

QUEUE_LAST_CHANGE = (
    '<Event xmlns="urn:schemas-sonos-com:metadata-1-0/Queue/">'
    + '<QueueID val="0"><UpdateID val="7"/><Curated val="0"/></QueueID>'
    + "</Event>"
)

ZONE_GROUP_STATE = (
    "<ZoneGroupState><ZoneGroups>"
    + '<ZoneGroup Coordinator="RINCON_000E58A0123401400" '
    + 'ID="RINCON_000E58A0123401400:1234">'
    + '<ZoneGroupMember UUID="RINCON_000E58A0123401400" '
    + 'Location="http://10.0.0.5:1400/xml/device_description.xml" '
    + 'ZoneName="Kitchen" SoftwareVersion="78.1-52020"/>'
    + '<ZoneGroupMember UUID="RINCON_000E58B0567801400" '
    + 'Location="http://10.0.0.6:1400/xml/device_description.xml" '
    + 'ZoneName="Kitchen"/>'
    + "</ZoneGroup>"
    + "</ZoneGroups>"
    + "<VanishedDevices>"
    + '<Device UUID="RINCON_000E58DEAD01400" ZoneName="Garage" Reason="powered off"/>'
    + "</VanishedDevices>"
    + "</ZoneGroupState>"
)


def description_xml(
    serial_number: str = SERIAL_NUMBER, room_name: str = "Kitchen", udn: str = UDN
) -> bytes:
    return DEVICE_DESCRIPTION_TEMPLATE.format(
        serial_number=serial_number, room_name=room_name, udn=udn
    ).encode("utf-8")


def property_set(*variables: tuple[str, str]) -> bytes:
    """A GENA NOTIFY body holding the given (name, value) variables."""
    properties = "".join(
        f"<e:property><{name}>{escape(value)}</{name}></e:property>"
        for name, value in variables
    )

    return (
        '<?xml version="1.0"?>'
        + '<e:propertyset xmlns:e="urn:schemas-upnp-org:event-1-0">'
        + properties
        + "</e:propertyset>"
    ).encode("utf-8")


def ssdp_response(location: str) -> bytes:
    return (
        "HTTP/1.1 200 OK\r\n"
        + "CACHE-CONTROL: max-age = 1800\r\n"
        + "EXT:\r\n"
        + f"LOCATION: {location}\r\n"
        + "SERVER: Linux UPnP/1.0 Sonos/78.1-52020 (ZPS18)\r\n"
        + "ST: urn:schemas-upnp-org:device:ZonePlayer:1\r\n"
        + f"USN: {UDN}::urn:schemas-upnp-org:device:ZonePlayer:1\r\n"
        + "\r\n"
    ).encode("utf-8")


class FakeZonePlayer(ZonePlayer):
    """A ZonePlayer which doesn't need a device to decide whether it coordinates."""

    def __init__(
        self,
        location: str = LOCATION,
        serial_number: str = SERIAL_NUMBER,
        room_name: str = "Kitchen",
        coordinator: bool = True,
    ):
        super().__init__(
            location,
            parse_device_description(
                description_xml(serial_number=serial_number, room_name=room_name)
            ),
        )
        self.coordinator = coordinator

    def is_coordinator(self) -> bool:
        return self.coordinator


class FakeResponse:
    def __init__(self, status_code: int = 200, headers: dict | None = None, text=""):
        self.status_code = status_code
        self.headers = CaseInsensitiveDict(headers or {})
        self.text = text


class SSDPResponder:
    """A loopback stand-in for zone players answering M-SEARCH requests."""

    def __init__(self, locations: list[str], repeat: int = 1):
        self.locations = locations
        self.repeat = repeat
        self.searches: list[bytes] = []

        self._socket = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self._socket.bind(("127.0.0.1", 0))
        self._socket.settimeout(0.1)
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._respond, daemon=True)

    @property
    def address(self) -> tuple[str, int]:
        return self._socket.getsockname()

    def _respond(self):
        while not self._stop.is_set():
            try:
                data, address = self._socket.recvfrom(65507)
            except TimeoutError:
                continue
            except OSError:
                return

            self.searches.append(data)

            for _ in range(self.repeat):
                for location in self.locations:
                    self._socket.sendto(ssdp_response(location), address)

    def start(self):
        self._thread.start()

    def stop(self):
        self._stop.set()
        self._thread.join(2)
        self._socket.close()


@pytest.fixture
def zone_player():
    return FakeZonePlayer()


@pytest.fixture
def zone_players():
    return ConcurrentRegistry()


@pytest.fixture
def subscriptions():
    return ConcurrentRegistry()


@pytest.fixture
def ssdp_responder():
    responders = []

    def _responder(locations: list[str], repeat: int = 1) -> SSDPResponder:
        responder = SSDPResponder(locations, repeat=repeat)
        responder.start()
        responders.append(responder)

        return responder

    yield _responder

    for responder in responders:
        responder.stop()
