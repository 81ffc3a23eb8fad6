from fastapi import APIRouter
from fastapi.responses import Response
from starlette.requests import Request

from zonelink.constants import CALLBACK_SERIAL_NUMBER_PARAM

# -----------------------------------------------------------------------------
# The UPnP event notification route.
#
# Zone players send GENA NOTIFY requests for every subscribed service to
# <event path>?sn=<serial number> (see SubscriptionManager.callback_url). All
# paths are accepted here and handed to the app's EventNotificationHandler,
# which works out which zone player, service and subscription each
# notification belongs to.
#
# Flow of UPnP events:
#
# UPnP event fired by zone player
#   -> NOTIFY /{path} (this endpoint)
#       -> EventNotificationHandler.handle()
#           -> EventDispatcher.dispatch_all()
#               -> subscription event handler
# -----------------------------------------------------------------------------

upnp_events_router = APIRouter(include_in_schema=False)


@upnp_events_router.api_route("/{path:path}", methods=["NOTIFY"])
async def upnp_event_notification(path: str, request: Request) -> Response:
    body = await request.body()

    status_code = await request.app.state.notification_handler.handle(
        serial_number=request.query_params.get(CALLBACK_SERIAL_NUMBER_PARAM),
        path=request.url.path,
        sid=request.headers.get("SID"),
        seq=request.headers.get("SEQ"),
        body=body,
    )

    return Response(status_code=status_code)
