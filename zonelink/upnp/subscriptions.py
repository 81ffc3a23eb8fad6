"""UPnP GENA event subscriptions.

A subscription asks a zone player to send NOTIFY requests for one of its
services to zonelink's callback server. The callback URL carries the zone
player's serial number so incoming notifications can be routed back to it:

    http://<local ip>:<callback port><event path>?sn=<serial number>
"""

from dataclasses import dataclass
import re
from typing import Callable
from urllib.parse import urlencode, urlparse

import requests

from zonelink.constants import (
    CALLBACK_SERIAL_NUMBER_PARAM,
    DEFAULT_SUBSCRIPTION_TIMEOUT,
    HTTP_TIMEOUT,
    UNSUPPORTED_EVENT_PATHS,
)
from zonelink.exceptions import (
    ZoneLinkInvalidSubscriptionError,
    ZoneLinkSubscriptionRejectedError,
    ZoneLinkTimeoutError,
)
from zonelink.logger import logger
from zonelink.models import UPnPSubscription
from zonelink.types import EventHandler, SubscriptionId
from zonelink.upnp.device import ZonePlayer
from zonelink.upnp.services import Service
from zonelink.utils import ConcurrentRegistry, Scope, get_local_ip_for

TIMEOUT_HEADER_PATTERN = re.compile(r"^\s*Second-(\d+)\s*$", re.IGNORECASE)


@dataclass
class SubscriptionOptions:
    """What to subscribe to, and who receives the resulting events.

    sid is set once the subscription has been made. granted_timeout is the
    timeout (in seconds) the zone player last granted, when it reported one.
    """

    zone_player: ZonePlayer | None
    service: Service | None
    handler: EventHandler | None = None
    timeout: int = 0
    sid: SubscriptionId | None = None
    granted_timeout: int | None = None

    def validate(self) -> None:
        if self.zone_player is None:
            raise ZoneLinkInvalidSubscriptionError("No zone player specified")

        if self.service is None:
            raise ZoneLinkInvalidSubscriptionError("No service specified")

        if self.service.event_path in UNSUPPORTED_EVENT_PATHS:
            raise ZoneLinkInvalidSubscriptionError(
                f"Events are not supported for {self.service.event_path}"
            )

        if not self.timeout or self.timeout <= 0:
            self.timeout = DEFAULT_SUBSCRIPTION_TIMEOUT

    def set_sid(self, sid: SubscriptionId) -> None:
        self.sid = sid

    @property
    def renewal_timeout(self) -> int:
        """Seconds until the subscription lapses unless renewed."""
        return self.granted_timeout or self.timeout


def parse_timeout_header(value: str | None) -> int | None:
    """Parse a GENA TIMEOUT header ("Second-1800"); None if absent or infinite."""
    if not value:
        return None

    match = TIMEOUT_HEADER_PATTERN.match(value)

    return int(match.group(1)) if match else None


def _http_timeout(scope: Scope | None) -> float:
    if scope is None:
        return HTTP_TIMEOUT

    if scope.cancelled:
        raise ZoneLinkTimeoutError("Scope cancelled before request was sent")

    remaining = scope.remaining

    return HTTP_TIMEOUT if remaining is None else remaining


def _raise_unless_accepted(method: str, endpoint: str, response) -> None:
    if 200 <= response.status_code < 300:
        return

    raise ZoneLinkSubscriptionRejectedError(
        f"{method} {endpoint} rejected [{response.status_code}]",
        status_code=response.status_code,
        body=response.text,
    )


def _require_sid(options: SubscriptionOptions) -> SubscriptionId:
    if not options.sid:
        raise ZoneLinkInvalidSubscriptionError("Subscription has no SID")

    return options.sid


class SubscriptionManager:
    """Make, renew and cancel GENA subscriptions.

    Successful subscriptions are recorded in the subscription registry (keyed
    by SID) which the callback server uses to find each notification's event
    handler. Cancelling a subscription does not remove its record.
    """

    def __init__(
        self,
        subscriptions: ConcurrentRegistry[SubscriptionId, UPnPSubscription],
        callback_port: Callable[[], int],
    ):
        self._subscriptions = subscriptions
        self._callback_port = callback_port

    def callback_url(self, options: SubscriptionOptions, timeout: float) -> str:
        """The callback URL a zone player should send the service's events to."""
        event_url = urlparse(options.service.event_endpoint)
        local_ip = get_local_ip_for(
            event_url.hostname, event_url.port or 80, timeout=timeout
        )
        query = urlencode(
            {CALLBACK_SERIAL_NUMBER_PARAM: options.zone_player.serial_number}
        )

        return f"http://{local_ip}:{self._callback_port()}{event_url.path}?{query}"

    def subscribe(
        self, options: SubscriptionOptions, scope: Scope | None = None
    ) -> SubscriptionId:
        """Subscribe to the service's events. Returns the subscription's SID."""
        options.validate()
        timeout = _http_timeout(scope)
        endpoint = options.service.event_endpoint

        response = requests.request(
            "SUBSCRIBE",
            endpoint,
            headers={
                "CALLBACK": f"<{self.callback_url(options, timeout)}>",
                "NT": "upnp:event",
                "TIMEOUT": f"Second-{options.timeout}",
            },
            timeout=timeout,
        )

        _raise_unless_accepted("SUBSCRIBE", endpoint, response)

        sid = response.headers.get("SID")

        if not sid:
            raise ZoneLinkSubscriptionRejectedError(
                f"SUBSCRIBE {endpoint} response has no SID",
                status_code=response.status_code,
                body=response.text,
            )

        sid = SubscriptionId(sid)
        options.granted_timeout = parse_timeout_header(response.headers.get("TIMEOUT"))

        self._subscriptions.load_or_store(
            sid,
            UPnPSubscription(
                id=sid,
                event_endpoint=endpoint,
                timeout=options.renewal_timeout,
                handler=options.handler,
            ),
        )
        options.set_sid(sid)

        logger.info(
            f"Subscribed to {options.service.name} events from "
            + f"{options.zone_player.serial_number} ({sid}, "
            + f"timeout {options.renewal_timeout}s)"
        )

        return sid

    def renew(self, options: SubscriptionOptions, scope: Scope | None = None) -> None:
        """Renew an existing subscription, keeping its event handler."""
        options.validate()
        sid = _require_sid(options)
        timeout = _http_timeout(scope)
        endpoint = options.service.event_endpoint

        response = requests.request(
            "SUBSCRIBE",
            endpoint,
            headers={"SID": sid, "TIMEOUT": f"Second-{options.timeout}"},
            timeout=timeout,
        )

        _raise_unless_accepted("SUBSCRIBE", endpoint, response)

        options.granted_timeout = parse_timeout_header(response.headers.get("TIMEOUT"))
        subscription = self._subscriptions.get(sid)

        if subscription is not None:
            subscription.timeout = options.renewal_timeout

        logger.info(f"Renewed {options.service.name} subscription {sid}")

    def unsubscribe(
        self, options: SubscriptionOptions, scope: Scope | None = None
    ) -> None:
        """Cancel a subscription. The subscription's record is kept."""
        options.validate()
        sid = _require_sid(options)
        timeout = _http_timeout(scope)
        endpoint = options.service.event_endpoint

        response = requests.request(
            "UNSUBSCRIBE", endpoint, headers={"SID": sid}, timeout=timeout
        )

        _raise_unless_accepted("UNSUBSCRIBE", endpoint, response)

        logger.info(f"Cancelled {options.service.name} subscription {sid}")
