import inspect

from conftest import AV_TRANSPORT_LAST_CHANGE, LOCATION, property_set
from zonelink.upnp.services import (
    SERVICE_DEFINITIONS,
    PropertyValue,
    ZoneLinkService,
    build_services,
)


def test_build_services_creates_every_known_service():
    services = build_services(LOCATION)

    assert len(services) == len(SERVICE_DEFINITIONS) == 15
    assert all(isinstance(service, ZoneLinkService) for service in services.values())


def test_endpoints_are_resolved_against_location():
    av_transport = build_services(LOCATION)["AVTransport"]

    assert (
        av_transport.control_endpoint
        == "http://10.0.0.5:1400/MediaRenderer/AVTransport/Control"
    )
    assert (
        av_transport.event_endpoint
        == "http://10.0.0.5:1400/MediaRenderer/AVTransport/Event"
    )
    assert av_transport.event_path == "/MediaRenderer/AVTransport/Event"
    assert av_transport.service_type == "urn:schemas-upnp-org:service:AVTransport:1"


def test_parse_event_is_lazy():
    service = build_services(LOCATION)["GroupRenderingControl"]

    assert inspect.isgenerator(service.parse_event(property_set(("GroupVolume", "1"))))


def test_parse_event_marshals_known_state_variables():
    service = build_services(LOCATION)["GroupRenderingControl"]
    body = property_set(
        ("GroupVolume", "25"), ("GroupMute", "1"), ("GroupVolumeChangeable", "0")
    )

    assert list(service.parse_event(body)) == [
        PropertyValue("GroupRenderingControl", "GroupVolume", 25, "ui2"),
        PropertyValue("GroupRenderingControl", "GroupMute", True, "boolean"),
        PropertyValue(
            "GroupRenderingControl", "GroupVolumeChangeable", False, "boolean"
        ),
    ]


def test_parse_event_keeps_unmarshalable_value_as_text():
    service = build_services(LOCATION)["GroupRenderingControl"]

    [value] = service.parse_event(property_set(("GroupVolume", "loud")))

    assert value.value == "loud"
    assert value.datatype == "ui2"


def test_parse_event_flags_unknown_variables():
    service = build_services(LOCATION)["GroupRenderingControl"]

    [value] = service.parse_event(property_set(("Mystery", "42")))

    assert value == PropertyValue("GroupRenderingControl", "Mystery", "42", None)


def test_parse_event_keeps_compound_variables_as_xml_text():
    service = build_services(LOCATION)["AVTransport"]

    [value] = service.parse_event(property_set(("LastChange", AV_TRANSPORT_LAST_CHANGE)))

    assert value.name == "LastChange"
    assert value.value == AV_TRANSPORT_LAST_CHANGE


def test_parse_event_with_malformed_body_yields_nothing():
    service = build_services(LOCATION)["AVTransport"]

    assert list(service.parse_event(b"<e:propertyset><e:property>")) == []
