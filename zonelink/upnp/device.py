"""The zone player device handle.

A ZonePlayer is built from a device description location, e.g.
http://10.0.0.5:1400/xml/device_description.xml. The description is fetched
and parsed once; the resulting handle is immutable and safe to share between
threads.

The description is parsed locally rather than via upnpclient because zone
players report their serial number as <serialNum> (not <serialNumber>) and
add a <roomName>, neither of which upnpclient exposes. upnpclient is still
used for action invocation (see ZonePlayer.upnp_device).
"""

import threading

from lxml import etree
import requests
import upnpclient

from zonelink.constants import (
    HTTP_TIMEOUT,
    ZONE_PLAYER_DESCRIPTION_PATH,
    ZONE_PLAYER_PORT,
)
from zonelink.exceptions import ZoneLinkDeviceError, ZoneLinkNotFoundError
from zonelink.logger import logger
from zonelink.models import DeviceDescription, ServiceDescription, ZoneGroupState
from zonelink.types import SerialNumber, UPnPServiceName
from zonelink.upnp.events import parse_zone_group_state
from zonelink.upnp.services import EVENT_XML_PARSER, Service, build_services


# -----------------------------------------------------------------------------
# Device description parsing

def _localname(element: etree._Element) -> str | None:
    if not isinstance(element.tag, str):
        return None

    return etree.QName(element).localname


def _child(element: etree._Element, name: str) -> etree._Element | None:
    return next(
        (child for child in element if _localname(child) == name), None
    )


def _child_text(element: etree._Element, name: str) -> str | None:
    child = _child(element, name)

    if child is None or child.text is None:
        return None

    return child.text.strip()


def _service_descriptions(device: etree._Element) -> list[ServiceDescription]:
    """All services of the device and its embedded devices."""
    services = []

    service_list = _child(device, "serviceList")

    if service_list is not None:
        for service in service_list:
            if _localname(service) != "service":
                continue

            services.append(
                ServiceDescription(
                    service_type=_child_text(service, "serviceType") or "",
                    service_id=_child_text(service, "serviceId") or "",
                    control_url=_child_text(service, "controlURL"),
                    event_sub_url=_child_text(service, "eventSubURL"),
                    scpd_url=_child_text(service, "SCPDURL"),
                )
            )

    device_list = _child(device, "deviceList")

    if device_list is not None:
        for embedded_device in device_list:
            if _localname(embedded_device) == "device":
                services.extend(_service_descriptions(embedded_device))

    return services


def parse_device_description(content: bytes) -> DeviceDescription:
    """Parse a zone player's device description document.

    Raises ZoneLinkDeviceError if the document is not XML or has no root
    <device>.
    """
    try:
        root = etree.fromstring(content, parser=EVENT_XML_PARSER)
    except etree.XMLSyntaxError as e:
        raise ZoneLinkDeviceError(f"Could not parse device description: {e}")

    device = _child(root, "device")

    if device is None:
        raise ZoneLinkDeviceError("Device description has no root device")

    return DeviceDescription(
        device_type=_child_text(device, "deviceType"),
        friendly_name=_child_text(device, "friendlyName"),
        manufacturer=_child_text(device, "manufacturer"),
        model_name=_child_text(device, "modelName"),
        model_number=_child_text(device, "modelNumber"),
        model_description=_child_text(device, "modelDescription"),
        serial_number=_child_text(device, "serialNum"),
        udn=_child_text(device, "UDN"),
        room_name=_child_text(device, "roomName"),
        display_name=_child_text(device, "displayName"),
        software_version=_child_text(device, "softwareVersion"),
        hardware_version=_child_text(device, "hardwareVersion"),
        mac_address=_child_text(device, "MACAddress"),
        services=_service_descriptions(device),
    )


# -----------------------------------------------------------------------------
# Zone player

class ZonePlayer:
    """A resolved zone player, identified by its serial number."""

    def __init__(self, location: str, description: DeviceDescription):
        if not description.serial_number:
            raise ZoneLinkDeviceError(
                f"Device description at {location} has no serial number"
            )

        if not description.udn:
            raise ZoneLinkDeviceError(f"Device description at {location} has no UDN")

        self._location = location
        self._description = description
        self._services = build_services(location)

        self._upnp_device: upnpclient.Device | None = None
        self._upnp_device_lock = threading.Lock()

    @classmethod
    def from_location(
        cls, location: str, timeout: float = HTTP_TIMEOUT
    ) -> "ZonePlayer":
        """Fetch and parse the device description at location."""
        response = requests.get(location, timeout=timeout)
        response.raise_for_status()

        return cls(location, parse_device_description(response.content))

    @classmethod
    def from_ip(cls, ip: str, timeout: float = HTTP_TIMEOUT) -> "ZonePlayer":
        return cls.from_location(
            f"http://{ip}:{ZONE_PLAYER_PORT}{ZONE_PLAYER_DESCRIPTION_PATH}",
            timeout=timeout,
        )

    def __repr__(self):
        return (
            f"ZonePlayer(room_name={self.room_name!r}, "
            + f"serial_number={self.serial_number!r}, location={self.location!r})"
        )

    @property
    def location(self) -> str:
        return self._location

    @property
    def description(self) -> DeviceDescription:
        return self._description

    @property
    def serial_number(self) -> SerialNumber:
        return SerialNumber(self._description.serial_number)

    @property
    def udn(self) -> str:
        return self._description.udn

    @property
    def uuid(self) -> str:
        """The UDN without its "uuid:" prefix, e.g. RINCON_000E58A0123401400."""
        return self.udn.split(":", 1)[-1]

    @property
    def room_name(self) -> str | None:
        return self._description.room_name

    @property
    def friendly_name(self) -> str | None:
        return self._description.friendly_name

    @property
    def model_name(self) -> str | None:
        return self._description.model_name

    @property
    def model_number(self) -> str | None:
        return self._description.model_number

    @property
    def model_description(self) -> str | None:
        return self._description.model_description

    @property
    def software_version(self) -> str | None:
        return self._description.software_version

    @property
    def hardware_version(self) -> str | None:
        return self._description.hardware_version

    @property
    def mac_address(self) -> str | None:
        return self._description.mac_address

    @property
    def services(self) -> dict[UPnPServiceName, Service]:
        return dict(self._services)

    def service(self, name: str) -> Service:
        try:
            return self._services[UPnPServiceName(name)]
        except KeyError:
            raise ZoneLinkNotFoundError(
                f"Zone player {self.serial_number} has no service named {name}"
            )

    def service_for_event_path(self, path: str) -> Service | None:
        """The service whose event endpoint path matches path, if any."""
        return next(
            (
                service
                for service in self._services.values()
                if service.event_path == path
            ),
            None,
        )

    @property
    def upnp_device(self) -> upnpclient.Device:
        """The upnpclient device used for action invocation.

        Created (which fetches the device and service descriptions) on first
        use.
        """
        with self._upnp_device_lock:
            if self._upnp_device is None:
                self._upnp_device = upnpclient.Device(self._location)

            return self._upnp_device

    def zone_group_state(self) -> ZoneGroupState:
        """The household's zone group topology, as seen by this zone player."""
        response = self.upnp_device.ZoneGroupTopology.GetZoneGroupState()

        return parse_zone_group_state(response["ZoneGroupState"])

    def is_coordinator(self) -> bool:
        """Whether this zone player coordinates its zone group.

        A zone player whose zone group state can't be determined is not
        treated as a coordinator.
        """
        try:
            zone_group_state = self.zone_group_state()
        except (
            upnpclient.UPNPError,
            upnpclient.soap.SOAPError,
            upnpclient.soap.SOAPProtocolError,
            requests.RequestException,
            etree.XMLSyntaxError,
            AttributeError,
            KeyError,
            ValueError,
        ) as e:
            logger.warning(
                f"Could not determine zone group state for {self.serial_number}: {e}"
            )
            return False

        return any(
            f"uuid:{group.coordinator}" == self.udn
            for group in zone_group_state.groups
        )
