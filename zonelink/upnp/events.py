"""Conversion of raw event property values into typed events.

Property values produced by Service.parse_event() are either scalar state
variables (already marshaled to Python types) or compound variables holding a
nested XML document. Compound variables are decoded by a decoder registered
for their (service, variable) pair; scalar variables are passed through as
StateVariableEvents.

LastChange documents look like:

    <Event xmlns="urn:schemas-upnp-org:metadata-1-0/AVT/">
        <InstanceID val="0">
            <TransportState val="PLAYING"/>
            <CurrentTrack val="3"/>
        </InstanceID>
    </Event>
"""

from typing import Any, Callable, Iterable

from lxml import etree

from zonelink.logger import logger
from zonelink.models import (
    AVTransportLastChange,
    AvailableSoftwareUpdate,
    QueueLastChange,
    QueueState,
    RenderingControlLastChange,
    StateVariableEvent,
    ZoneGroup,
    ZoneGroupMember,
    ZoneGroupState,
    ZoneGroupStateEvent,
    ZoneLinkEvent,
)
from zonelink.types import EventHandler, UPnPPropertyName, UPnPServiceName
from zonelink.upnp.services import EVENT_XML_PARSER, PropertyValue

EventDecoder = Callable[[str], ZoneLinkEvent]


# -----------------------------------------------------------------------------
# XML helpers

def _parse_xml(text: str) -> etree._Element:
    return etree.fromstring(text.encode("utf-8"), parser=EVENT_XML_PARSER)


def _localname(element: etree._Element) -> str | None:
    if not isinstance(element.tag, str):
        return None

    return etree.QName(element).localname


def _child_elements(element: etree._Element, name: str) -> list[etree._Element]:
    return [child for child in element if _localname(child) == name]


def _val_attributes(element: etree._Element, id_name: str) -> dict[str, Any]:
    """Collect the val attributes of an element's children.

    The element's own val is stored under id_name. Children with a channel
    attribute (e.g. Volume, Mute) are collected into a dict keyed by channel.
    """
    values: dict[str, Any] = {id_name: element.get("val")}

    for child in element:
        name = _localname(child)

        if name is None:
            continue

        channel = child.get("channel")

        if channel is not None:
            channels = values.setdefault(name, {})

            if isinstance(channels, dict):
                channels[channel] = child.get("val")
        else:
            values[name] = child.get("val")

    return values


def _last_change_instance(text: str) -> dict[str, Any]:
    root = _parse_xml(text)
    instances = _child_elements(root, "InstanceID")

    if not instances:
        raise ValueError("LastChange document has no InstanceID")

    return _val_attributes(instances[0], "InstanceID")


# -----------------------------------------------------------------------------
# Decoders

def decode_av_transport_last_change(text: str) -> AVTransportLastChange:
    return AVTransportLastChange(**_last_change_instance(text))


def decode_rendering_control_last_change(text: str) -> RenderingControlLastChange:
    return RenderingControlLastChange(**_last_change_instance(text))


def decode_queue_last_change(text: str) -> QueueLastChange:
    root = _parse_xml(text)

    return QueueLastChange(
        queues=[
            QueueState(**_val_attributes(queue, "QueueID"))
            for queue in _child_elements(root, "QueueID")
        ]
    )


def parse_zone_group_state(text: str) -> ZoneGroupState:
    """Parse a ZoneGroupState document.

    Both the current (<ZoneGroupState><ZoneGroups>...) and the older
    (<ZoneGroups>...) document shapes are accepted.
    """
    root = _parse_xml(text)

    groups = [
        ZoneGroup(
            Coordinator=group.get("Coordinator"),
            ID=group.get("ID"),
            members=[
                ZoneGroupMember(**dict(member.attrib))
                for member in _child_elements(group, "ZoneGroupMember")
            ],
        )
        for group in root.iter("{*}ZoneGroup")
    ]

    vanished_devices = [
        device.get("UUID")
        for vanished in root.iter("{*}VanishedDevices")
        for device in _child_elements(vanished, "Device")
        if device.get("UUID")
    ]

    return ZoneGroupState(groups=groups, vanished_devices=vanished_devices)


def decode_zone_group_state(text: str) -> ZoneGroupStateEvent:
    return ZoneGroupStateEvent(zone_group_state=parse_zone_group_state(text))


def decode_available_software_update(text: str) -> AvailableSoftwareUpdate:
    root = _parse_xml(text)

    return AvailableSoftwareUpdate(**dict(root.attrib))


def _key(service: str, name: str) -> tuple[UPnPServiceName, UPnPPropertyName]:
    return UPnPServiceName(service), UPnPPropertyName(name)


DEFAULT_DECODERS: dict[tuple[UPnPServiceName, UPnPPropertyName], EventDecoder] = {
    _key("AVTransport", "LastChange"): decode_av_transport_last_change,
    _key("RenderingControl", "LastChange"): decode_rendering_control_last_change,
    _key("Queue", "LastChange"): decode_queue_last_change,
    _key("ZoneGroupTopology", "ZoneGroupState"): decode_zone_group_state,
    _key(
        "ZoneGroupTopology", "AvailableSoftwareUpdate"
    ): decode_available_software_update,
}


# -----------------------------------------------------------------------------
# Dispatcher

class EventDispatcher:
    """Turn property values into typed events and hand them to handlers.

    Failures are per-event: an undecodable or unrecognized property value is
    logged and dropped without affecting the rest of the batch.
    """

    def __init__(
        self,
        decoders: dict[tuple[UPnPServiceName, UPnPPropertyName], EventDecoder]
        | None = None,
    ):
        self._decoders = dict(DEFAULT_DECODERS if decoders is None else decoders)

    def to_event(self, property_value: PropertyValue) -> ZoneLinkEvent | None:
        """The typed event for the property value, or None if there isn't one."""
        service, name = property_value.service, property_value.name

        if decoder := self._decoders.get((service, name)):
            if not property_value.value:
                logger.debug(f"Ignoring empty {service}:{name} event")
                return None

            try:
                return decoder(property_value.value)
            except (etree.XMLSyntaxError, ValueError) as e:
                logger.warning(f"Could not decode {service}:{name} event: {e}")
                return None

        if property_value.datatype is None:
            logger.warning(f"Ignoring unrecognized {service}:{name} event")
            return None

        return StateVariableEvent(
            service=service, name=name, value=property_value.value
        )

    def dispatch(self, property_value: PropertyValue, handler: EventHandler) -> bool:
        """Send the typed event for property_value to the handler.

        Returns True if the handler was invoked.
        """
        event = self.to_event(property_value)

        if event is None:
            return False

        try:
            handler(event)
        except Exception:
            logger.exception(
                f"Event handler failed on {property_value.service}:"
                + f"{property_value.name} event"
            )

        return True

    def dispatch_all(
        self, property_values: Iterable[PropertyValue], handler: EventHandler
    ) -> int:
        """Dispatch each property value in order. Returns the number handled."""
        return sum(
            1
            for property_value in property_values
            if self.dispatch(property_value, handler)
        )
