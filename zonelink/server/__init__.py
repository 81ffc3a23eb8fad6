from .notifications import EventNotificationHandler
from .server import CallbackServer, create_callback_app
