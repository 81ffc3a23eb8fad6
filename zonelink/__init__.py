from zonelink.exceptions import (
    ZoneLinkDeviceError,
    ZoneLinkError,
    ZoneLinkInvalidSubscriptionError,
    ZoneLinkNotFoundError,
    ZoneLinkSubscriptionRejectedError,
    ZoneLinkTimeoutError,
)
from .base import ZoneLink
from .upnp.subscriptions import SubscriptionOptions
from .utils import Scope

(
    Scope,
    SubscriptionOptions,
    ZoneLink,
    ZoneLinkDeviceError,
    ZoneLinkError,
    ZoneLinkInvalidSubscriptionError,
    ZoneLinkNotFoundError,
    ZoneLinkSubscriptionRejectedError,
    ZoneLinkTimeoutError,
)
