import copy
import socket
import threading
import time

from fastapi import FastAPI
import uvicorn

from zonelink.constants import ZONELINK_VER
from zonelink.logger import LOG_FORMAT, logger
from zonelink.server.notifications import EventNotificationHandler
from zonelink.server.routers import upnp_events_router


def create_callback_app(notification_handler: EventNotificationHandler) -> FastAPI:
    """Create the FastAPI application which receives UPnP event notifications.

    The notification handler is available to the routers as
    app.state.notification_handler.
    """
    callback_app = FastAPI(
        title="zonelink",
        description="UPnP event notification receiver",
        version=ZONELINK_VER,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )

    callback_app.state.notification_handler = notification_handler
    callback_app.include_router(upnp_events_router)

    return callback_app


def _log_config() -> dict:
    log_config = copy.deepcopy(uvicorn.config.LOGGING_CONFIG)

    log_config["formatters"]["default"]["fmt"] = LOG_FORMAT
    log_config["formatters"]["access"]["fmt"] = (
        "%(asctime)s %(name)s [%(levelname)s] %(client_addr)s [%(status_code)s] "
        + "%(request_line)s"
    )

    return log_config


class CallbackServer:
    """Serve the callback app on an ephemeral port, on a background thread.

    The listening socket is bound at construction so the port is known (and
    can be advertised in subscription callback URLs) before start().
    """

    def __init__(
        self, app: FastAPI, host: str = "0.0.0.0", startup_timeout: float = 5
    ):
        self._socket = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._socket.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._socket.bind((host, 0))

        self._startup_timeout = startup_timeout
        self._server = uvicorn.Server(
            uvicorn.Config(
                app,
                log_config=_log_config(),
                log_level="info",
                access_log=False,
            )
        )
        self._thread: threading.Thread | None = None

    @property
    def host(self) -> str:
        return self._socket.getsockname()[0]

    @property
    def port(self) -> int:
        return self._socket.getsockname()[1]

    @property
    def started(self) -> bool:
        return self._server.started

    def start(self) -> None:
        """Start serving, returning once the server accepts connections."""
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={"sockets": [self._socket]},
            name="ZoneLink-CallbackServer",
            daemon=True,
        )
        self._thread.start()

        deadline = time.monotonic() + self._startup_timeout

        while not self._server.started and self._thread.is_alive():
            if time.monotonic() >= deadline:
                logger.warning("Callback server has not finished starting up")
                break

            time.sleep(0.01)

        logger.info(f"Callback server listening on port {self.port}")

    def stop(self, timeout: float = 5) -> None:
        self._server.should_exit = True

        if self._thread is not None:
            self._thread.join(timeout)

        self._socket.close()
        logger.info("Callback server stopped")
