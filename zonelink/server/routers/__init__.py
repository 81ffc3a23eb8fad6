from .upnp_events import upnp_events_router
