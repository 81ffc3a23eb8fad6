from typing import Any, Callable, NewType

# -----------------------------------------------------------------------------
# Application types
# -----------------------------------------------------------------------------

SerialNumber = NewType("SerialNumber", str)

SubscriptionId = NewType("SubscriptionId", str)

# UPnP ------------------------------------------------------------------------

UPnPServiceName = NewType("UPnPServiceName", str)

UPnPPropertyName = NewType("UPnPPropertyName", str)

# UPnP state variable datatype, e.g. "ui4", "boolean", "string"
UPnPDataType = str

# Handlers --------------------------------------------------------------------

# Receives a single typed event (a ZoneLinkEvent subclass). Handlers can be
# invoked concurrently and out of order.
EventHandler = Callable[[Any], None]

# Receives each newly discovered coordinator (a ZonePlayer).
FoundZonePlayerHandler = Callable[[Any], None]
