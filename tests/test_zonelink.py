import threading
import time

import pytest
import requests

from conftest import (
    AV_TRANSPORT_LAST_CHANGE,
    FakeResponse,
    FakeZonePlayer,
    property_set,
)
from zonelink import SubscriptionOptions, ZoneLink
from zonelink.exceptions import ZoneLinkTimeoutError
from zonelink.models import AVTransportLastChange
import zonelink.upnp.subscriptions as subscriptions_module
from zonelink.utils import Scope


@pytest.fixture
def zonelink_for(ssdp_responder):
    instances = []

    def _zonelink_for(zone_players: list[FakeZonePlayer]):
        by_location = {zone_player.location: zone_player for zone_player in zone_players}
        responder = ssdp_responder(list(by_location))

        def factory(location):
            try:
                return by_location[location]
            except KeyError:
                raise requests.ConnectionError(f"No device at {location}")

        zonelink = ZoneLink(
            callback_host="127.0.0.1",
            zone_player_factory=factory,
            search_addresses=[responder.address],
            first_event_retry_delay=0.5,
        )
        instances.append(zonelink)

        return zonelink, responder

    yield _zonelink_for

    for zonelink in instances:
        zonelink.close()


@pytest.fixture
def fake_subscribe(monkeypatch):
    sent = []

    def fake_request(method, url, headers=None, timeout=None):
        sent.append({"method": method, "url": url, "headers": headers})
        return FakeResponse(200, {"SID": "uuid:abc", "TIMEOUT": "Second-300"})

    monkeypatch.setattr(subscriptions_module.requests, "request", fake_request)
    monkeypatch.setattr(
        subscriptions_module,
        "get_local_ip_for",
        lambda host, port, timeout: "127.0.0.1",
    )

    return sent


def test_find_room(zonelink_for):
    kitchen = FakeZonePlayer()
    zonelink, _ = zonelink_for([kitchen])

    assert zonelink.find_room("Kitchen", timeout=5) is kitchen
    assert zonelink.zone_players == [kitchen]


def test_find_room_returns_registered_zone_player_without_searching(zonelink_for):
    kitchen = FakeZonePlayer()
    zonelink, responder = zonelink_for([])
    zonelink.register(kitchen)

    assert zonelink.find_room("Kitchen", timeout=5) is kitchen
    assert responder.searches == []


def test_find_room_times_out(zonelink_for):
    zonelink, _ = zonelink_for([FakeZonePlayer()])

    with pytest.raises(ZoneLinkTimeoutError):
        zonelink.find_room("Attic", timeout=0.5)


def test_find_room_returns_once_the_room_is_found(zonelink_for):
    kitchen = FakeZonePlayer()
    zonelink, _ = zonelink_for([kitchen])

    with Scope(10) as scope:
        started = time.monotonic()

        assert zonelink.find_room("Kitchen", scope=scope) is kitchen
        assert time.monotonic() - started < 5


def test_find_room_ends_when_scope_is_cancelled(zonelink_for):
    zonelink, _ = zonelink_for([])
    scope = Scope()
    threading.Timer(0.2, scope.cancel).start()
    started = time.monotonic()

    with pytest.raises(ZoneLinkTimeoutError):
        zonelink.find_room("Kitchen", scope=scope)

    assert time.monotonic() - started < 5


def test_subscribed_events_reach_handler(zonelink_for, fake_subscribe):
    kitchen = FakeZonePlayer()
    zonelink, _ = zonelink_for([kitchen])
    zonelink.register(kitchen)
    events = []

    options = SubscriptionOptions(
        zone_player=kitchen,
        service=kitchen.service("AVTransport"),
        handler=events.append,
    )
    sid = zonelink.subscribe(options)

    callback_url = fake_subscribe[0]["headers"]["CALLBACK"].strip("<>")
    assert callback_url.startswith(f"http://127.0.0.1:{zonelink.callback_port}/")

    with requests.Session() as session:
        response = session.request(
            "NOTIFY",
            callback_url,
            headers={"SID": sid, "SEQ": "0", "NT": "upnp:event"},
            data=property_set(("LastChange", AV_TRANSPORT_LAST_CHANGE)),
            timeout=5,
        )

    assert response.status_code == 200
    [event] = events
    assert isinstance(event, AVTransportLastChange)
    assert event.current_track == 3


def test_forget_subscription(zonelink_for, fake_subscribe):
    kitchen = FakeZonePlayer()
    zonelink, _ = zonelink_for([])
    options = SubscriptionOptions(
        zone_player=kitchen, service=kitchen.service("AVTransport")
    )
    zonelink.subscribe(options)

    zonelink.unsubscribe(options)
    assert [subscription.id for subscription in zonelink.subscriptions] == ["uuid:abc"]

    assert zonelink.forget_subscription("uuid:abc").id == "uuid:abc"
    assert zonelink.subscriptions == []


def test_close_is_idempotent():
    with ZoneLink(callback_host="127.0.0.1", search_addresses=[]) as zonelink:
        port = zonelink.callback_port

    zonelink.close()

    with pytest.raises(requests.ConnectionError):
        requests.Session().request("NOTIFY", f"http://127.0.0.1:{port}/", timeout=1)
