"""Zone player UPnP services.

A zone player exposes a fixed set of UPnP services. zonelink only needs two
capabilities from each of them: where its endpoints are, and how to turn the
body of an event notification into property values. Action invocation (SOAP)
is left to upnpclient (see ZonePlayer.upnp_device).
"""

from typing import Any, Iterator, NamedTuple, Protocol, runtime_checkable
from urllib.parse import urljoin, urlparse

from lxml import etree
from upnpclient.marshal import marshal_value

from zonelink.logger import logger
from zonelink.types import UPnPDataType, UPnPPropertyName, UPnPServiceName

# Event bodies arrive from the network; never resolve entities or fetch DTDs.
EVENT_XML_PARSER = etree.XMLParser(resolve_entities=False, no_network=True)


class PropertyValue(NamedTuple):
    """A single state variable value from an event notification.

    The value is marshaled to the state variable's Python type. The datatype
    is None when the variable is not known to the service.
    """

    service: UPnPServiceName
    name: UPnPPropertyName
    value: Any
    datatype: UPnPDataType | None


class ServiceDefinition(NamedTuple):
    name: UPnPServiceName
    control_path: str
    event_path: str
    # Evented state variables, mapped to their UPnP datatypes
    state_variables: dict[str, UPnPDataType]


@runtime_checkable
class ZoneLinkService(Protocol):
    """The service capabilities the eventing engine relies on."""

    @property
    def control_endpoint(self) -> str:
        ...

    @property
    def event_endpoint(self) -> str:
        ...

    def parse_event(self, body: bytes) -> Iterator[PropertyValue]:
        ...


def _definition(name, control_path, event_path, state_variables):
    return ServiceDefinition(
        UPnPServiceName(name), control_path, event_path, state_variables
    )


# -----------------------------------------------------------------------------
# Known zone player services.
#
# LastChange, ZoneGroupState, and AvailableSoftwareUpdate carry nested XML
# documents (as strings). They're decoded into typed events by the
# EventDispatcher.
# -----------------------------------------------------------------------------

SERVICE_DEFINITIONS: list[ServiceDefinition] = [
    _definition(
        "AlarmClock",
        "/AlarmClock/Control",
        "/AlarmClock/Event",
        {
            "TimeZone": "string",
            "TimeServer": "string",
            "TimeGeneration": "ui4",
            "AlarmListVersion": "string",
            "DailyIndexRefreshTime": "string",
            "TimeFormat": "string",
            "DateFormat": "string",
        },
    ),
    _definition(
        "AudioIn",
        "/AudioIn/Control",
        "/AudioIn/Event",
        {
            "AudioInputName": "string",
            "Icon": "string",
            "LineInConnected": "boolean",
            "LeftLineInLevel": "i4",
            "RightLineInLevel": "i4",
            "Playing": "boolean",
        },
    ),
    _definition(
        "AVTransport",
        "/MediaRenderer/AVTransport/Control",
        "/MediaRenderer/AVTransport/Event",
        {"LastChange": "string"},
    ),
    _definition(
        "ConnectionManager",
        "/MediaRenderer/ConnectionManager/Control",
        "/MediaRenderer/ConnectionManager/Event",
        {
            "SourceProtocolInfo": "string",
            "SinkProtocolInfo": "string",
            "CurrentConnectionIDs": "string",
        },
    ),
    _definition(
        "ContentDirectory",
        "/MediaServer/ContentDirectory/Control",
        "/MediaServer/ContentDirectory/Event",
        {
            "SystemUpdateID": "ui4",
            "ContainerUpdateIDs": "string",
            "ShareIndexInProgress": "boolean",
            "ShareIndexLastError": "string",
            "UserRadioUpdateID": "string",
            "SavedQueuesUpdateID": "string",
            "ShareListUpdateID": "string",
            "RecentlyPlayedUpdateID": "string",
            "Browseable": "boolean",
            "RadioFavoritesUpdateID": "ui4",
            "RadioLocationUpdateID": "ui4",
            "FavoritesUpdateID": "string",
            "FavoritePresetsUpdateID": "string",
        },
    ),
    _definition(
        "DeviceProperties",
        "/DeviceProperties/Control",
        "/DeviceProperties/Event",
        {
            "SettingsReplicationState": "string",
            "ZoneName": "string",
            "Icon": "string",
            "Configuration": "string",
            "Invisible": "boolean",
            "IsZoneBridge": "boolean",
            "AirPlayEnabled": "boolean",
            "SupportsAudioIn": "boolean",
            "SupportsAudioClip": "boolean",
            "IsIdle": "boolean",
            "MoreInfo": "string",
            "ChannelMapSet": "string",
            "HTSatChanMapSet": "string",
            "HTBondedZoneCommitState": "ui4",
            "Orientation": "i4",
            "LastChangedPlayState": "string",
            "RoomCalibrationState": "i4",
            "AvailableRoomCalibration": "string",
            "TVConfigurationError": "boolean",
            "HdmiCecAvailable": "boolean",
            "WirelessMode": "ui4",
            "WirelessLeafOnly": "boolean",
            "HasConfiguredSSID": "boolean",
            "ChannelFreq": "ui4",
            "BehindWifiExtender": "ui4",
            "WifiEnabled": "boolean",
            "EthLink": "boolean",
            "ConfigMode": "string",
            "SecureRegState": "ui4",
            "VoiceConfigState": "ui4",
            "MicEnabled": "ui4",
        },
    ),
    _definition(
        "GroupManagement",
        "/GroupManagement/Control",
        "/GroupManagement/Event",
        {
            "GroupCoordinatorIsLocal": "boolean",
            "LocalGroupUUID": "string",
            "VirtualLineInGroupID": "string",
            "ResetVolumeAfter": "boolean",
            "VolumeAVTransportURI": "string",
        },
    ),
    _definition(
        "GroupRenderingControl",
        "/MediaRenderer/GroupRenderingControl/Control",
        "/MediaRenderer/GroupRenderingControl/Event",
        {
            "GroupMute": "boolean",
            "GroupVolume": "ui2",
            "GroupVolumeChangeable": "boolean",
        },
    ),
    _definition(
        "MusicServices",
        "/MusicServices/Control",
        "/MusicServices/Event",
        {"ServiceListVersion": "string"},
    ),
    _definition("QPlay", "/QPlay/Control", "/QPlay/Event", {}),
    _definition(
        "Queue",
        "/MediaRenderer/Queue/Control",
        "/MediaRenderer/Queue/Event",
        {"LastChange": "string"},
    ),
    _definition(
        "RenderingControl",
        "/MediaRenderer/RenderingControl/Control",
        "/MediaRenderer/RenderingControl/Event",
        {"LastChange": "string"},
    ),
    _definition(
        "SystemProperties",
        "/SystemProperties/Control",
        "/SystemProperties/Event",
        {
            "CustomerID": "string",
            "UpdateID": "ui4",
            "UpdateIDX": "ui4",
            "VoiceUpdateID": "ui4",
            "ThirdPartyHash": "string",
        },
    ),
    _definition(
        "VirtualLineIn",
        "/MediaRenderer/VirtualLineIn/Control",
        "/MediaRenderer/VirtualLineIn/Event",
        {"CurrentTrackMetaData": "string"},
    ),
    _definition(
        "ZoneGroupTopology",
        "/ZoneGroupTopology/Control",
        "/ZoneGroupTopology/Event",
        {
            "AvailableSoftwareUpdate": "string",
            "ZoneGroupState": "string",
            "ThirdPartyMediaServersX": "string",
            "AlarmRunSequence": "string",
            "MuseHouseholdId": "string",
            "ZoneGroupName": "string",
            "ZoneGroupID": "string",
            "ZonePlayerUUIDsInGroup": "string",
            "AreasUpdateID": "string",
            "SourceAreasUpdateID": "string",
            "NetsettingsUpdateID": "string",
        },
    ),
]


class Service:
    """A single UPnP service on a zone player.

    Endpoints are resolved against the zone player's device description
    location, e.g. http://10.0.0.5:1400/MediaRenderer/AVTransport/Event.
    """

    def __init__(self, definition: ServiceDefinition, location: str):
        self._definition = definition
        self._control_endpoint = urljoin(location, definition.control_path)
        self._event_endpoint = urljoin(location, definition.event_path)

    def __repr__(self):
        return f"Service({self.name!r}, {self._event_endpoint!r})"

    @property
    def name(self) -> UPnPServiceName:
        return self._definition.name

    @property
    def service_type(self) -> str:
        return f"urn:schemas-upnp-org:service:{self.name}:1"

    @property
    def control_endpoint(self) -> str:
        return self._control_endpoint

    @property
    def event_endpoint(self) -> str:
        return self._event_endpoint

    @property
    def event_path(self) -> str:
        return urlparse(self._event_endpoint).path

    @property
    def state_variables(self) -> dict[str, UPnPDataType]:
        return dict(self._definition.state_variables)

    def parse_event(self, body: bytes) -> Iterator[PropertyValue]:
        """Lazily parse a GENA property set into property values.

        The body is expected to look like:

            <e:propertyset xmlns:e="urn:schemas-upnp-org:event-1-0">
                <e:property><VariableName>value</VariableName></e:property>
                ...
            </e:propertyset>

        A malformed body is logged and yields nothing.
        """
        try:
            property_set = etree.fromstring(body, parser=EVENT_XML_PARSER)
        except etree.XMLSyntaxError as e:
            logger.warning(f"Could not parse {self.name} event body: {e}")
            return

        for property_element in property_set:
            if not isinstance(property_element.tag, str):
                continue

            for variable in property_element:
                if not isinstance(variable.tag, str):
                    continue

                name = UPnPPropertyName(etree.QName(variable).localname)
                yield self._property_value(name, variable.text or "")

    def _property_value(self, name: UPnPPropertyName, text: str) -> PropertyValue:
        datatype = self._definition.state_variables.get(name)

        if datatype is None:
            return PropertyValue(self.name, name, text, None)

        try:
            _, value = marshal_value(datatype, text)
        except ValueError as e:
            logger.warning(
                f"Could not marshal {self.name}:{name} value '{text}' as "
                + f"{datatype}: {e}"
            )
            value = text

        return PropertyValue(self.name, name, value, datatype)


def build_services(location: str) -> dict[UPnPServiceName, Service]:
    """Create every known zone player service for the device at location."""
    return {
        definition.name: Service(definition, location)
        for definition in SERVICE_DEFINITIONS
    }
