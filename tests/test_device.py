import pytest
import requests

from conftest import (
    LOCATION,
    SERIAL_NUMBER,
    ZONE_GROUP_STATE,
    FakeResponse,
    description_xml,
)
from zonelink.exceptions import ZoneLinkDeviceError, ZoneLinkNotFoundError
from zonelink.upnp.device import ZonePlayer, parse_device_description
from zonelink.upnp.events import parse_zone_group_state


def test_parse_device_description():
    description = parse_device_description(description_xml())

    assert description.serial_number == SERIAL_NUMBER
    assert description.room_name == "Kitchen"
    assert description.udn == "uuid:RINCON_000E58A0123401400"
    assert description.model_name == "Sonos One"
    assert description.model_number == "S18"
    assert description.mac_address == "00:0E:58:A0:12:34"
    assert description.software_version == "78.1-52020"


def test_parse_device_description_includes_embedded_device_services():
    description = parse_device_description(description_xml())

    assert [service.service_id for service in description.services] == [
        "urn:upnp-org:serviceId:AlarmClock",
        "urn:upnp-org:serviceId:AVTransport",
    ]
    assert description.services[1].event_sub_url == "/MediaRenderer/AVTransport/Event"


@pytest.mark.parametrize(
    "content",
    [b"<root><device>", b'<root xmlns="urn:schemas-upnp-org:device-1-0"/>'],
    ids=["malformed", "no-device"],
)
def test_parse_device_description_rejects_unusable_documents(content):
    with pytest.raises(ZoneLinkDeviceError):
        parse_device_description(content)


def test_zone_player_requires_serial_number():
    description = parse_device_description(description_xml(serial_number=""))

    with pytest.raises(ZoneLinkDeviceError):
        ZonePlayer(LOCATION, description)


def test_zone_player_identity():
    zone_player = ZonePlayer(LOCATION, parse_device_description(description_xml()))

    assert zone_player.serial_number == SERIAL_NUMBER
    assert zone_player.uuid == "RINCON_000E58A0123401400"
    assert zone_player.room_name == "Kitchen"
    assert zone_player.location == LOCATION


def test_zone_player_services(zone_player):
    assert zone_player.service("Queue").event_endpoint == (
        "http://10.0.0.5:1400/MediaRenderer/Queue/Event"
    )

    with pytest.raises(ZoneLinkNotFoundError):
        zone_player.service("Nope")


def test_service_for_event_path(zone_player):
    assert zone_player.service_for_event_path("/AlarmClock/Event").name == "AlarmClock"
    assert zone_player.service_for_event_path("/Nope/Event") is None


def test_from_ip_fetches_description(monkeypatch):
    requested = []

    def fake_get(url, timeout):
        requested.append(url)
        return FakeDescriptionResponse()

    monkeypatch.setattr(requests, "get", fake_get)

    zone_player = ZonePlayer.from_ip("10.0.0.5")

    assert requested == [LOCATION]
    assert zone_player.serial_number == SERIAL_NUMBER


class FakeDescriptionResponse(FakeResponse):
    content = description_xml()

    def raise_for_status(self):
        pass


def test_is_coordinator(monkeypatch):
    zone_player = ZonePlayer(LOCATION, parse_device_description(description_xml()))
    monkeypatch.setattr(
        zone_player,
        "zone_group_state",
        lambda: parse_zone_group_state(ZONE_GROUP_STATE),
    )

    assert zone_player.is_coordinator()


def test_group_member_is_not_coordinator(monkeypatch):
    zone_player = ZonePlayer(
        "http://10.0.0.6:1400/xml/device_description.xml",
        parse_device_description(
            description_xml(udn="uuid:RINCON_000E58B0567801400")
        ),
    )
    monkeypatch.setattr(
        zone_player,
        "zone_group_state",
        lambda: parse_zone_group_state(ZONE_GROUP_STATE),
    )

    assert not zone_player.is_coordinator()


def test_unreachable_zone_player_is_not_coordinator(monkeypatch):
    zone_player = ZonePlayer(LOCATION, parse_device_description(description_xml()))

    def unreachable():
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(zone_player, "zone_group_state", unreachable)

    assert not zone_player.is_coordinator()
