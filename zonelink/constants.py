import importlib.metadata

ZONELINK_VER = importlib.metadata.version("zonelink")

# SSDP discovery
SSDP_MULTICAST_ADDRESS = ("239.255.255.250", 1900)
SSDP_BROADCAST_ADDRESS = ("255.255.255.255", 1900)
SSDP_SEARCH_ADDRESSES = [SSDP_MULTICAST_ADDRESS, SSDP_BROADCAST_ADDRESS]
SSDP_SEARCH_TARGET = "urn:schemas-upnp-org:device:ZonePlayer:1"
SSDP_MX = 1
SSDP_MAX_DATAGRAM = 65507

# How long a discovery reader blocks on the socket before re-checking whether
# its scope has been cancelled.
SSDP_READ_INTERVAL = 0.5

ZONE_PLAYER_PORT = 1400
ZONE_PLAYER_DESCRIPTION_PATH = "/xml/device_description.xml"

# GENA subscriptions
DEFAULT_SUBSCRIPTION_TIMEOUT = 86400  # 24 hours
UNSUPPORTED_EVENT_PATHS = ["/QPlay/Event"]
CALLBACK_SERIAL_NUMBER_PARAM = "sn"

# A device can send the first event for a subscription (seq 0) before the
# SUBSCRIBE response has been processed. Wait this long before looking up the
# subscription's handler a second time.
FIRST_EVENT_RETRY_DELAY = 1.0

HTTP_TIMEOUT = 10
