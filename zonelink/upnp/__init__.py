from zonelink.upnp.device import ZonePlayer
from zonelink.upnp.discovery import DiscoveryEngine
from zonelink.upnp.events import EventDispatcher
from zonelink.upnp.services import PropertyValue, Service
from zonelink.upnp.subscriptions import SubscriptionManager, SubscriptionOptions

__all__ = [
    "DiscoveryEngine",
    "EventDispatcher",
    "PropertyValue",
    "Service",
    "SubscriptionManager",
    "SubscriptionOptions",
    "ZonePlayer",
]
