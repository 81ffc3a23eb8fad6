import socket
import threading
import time
from typing import Callable, Generic, Iterable, TypeVar

import requests

from zonelink.constants import HTTP_TIMEOUT
from zonelink.exceptions import ZoneLinkError
from zonelink.logger import logger

K = TypeVar("K")
V = TypeVar("V")


# =============================================================================
# General utilities
# =============================================================================

# -----------------------------------------------------------------------------
# Classes

class StoppableThread(threading.Thread):
    """A Thread class which allows for external stopping.

    The thread can be stopped externally by calling thread.stop(). Requires the
    thread target to frequently check whether stop_event is set.
    """
    def __init__(self, *args, **kwargs):
        super(StoppableThread, self).__init__(*args, **kwargs)
        self.stop_event = threading.Event()

    def stop(self):
        self.stop_event.set()

    def stopped(self):
        return self.stop_event.is_set()


class Scope:
    """A cancellation scope with an optional deadline.

    A scope is cancelled once cancel() is called or, when a timeout was given,
    once the timeout has elapsed. Work bound to a scope (such as a discovery
    search) stops when the scope is cancelled. Using the scope as a context
    manager cancels it on exit.
    """
    def __init__(self, timeout: float | None = None):
        self._cancel_event = threading.Event()
        self._deadline = None if timeout is None else time.monotonic() + timeout

        self._cancel_callbacks: list[Callable[[], None]] = []
        self._cancel_callbacks_lock = threading.Lock()

    def cancel(self) -> None:
        with self._cancel_callbacks_lock:
            if self._cancel_event.is_set():
                return

            self._cancel_event.set()
            callbacks = self._cancel_callbacks
            self._cancel_callbacks = []

        for callback in callbacks:
            callback()

    def on_cancel(self, callback: Callable[[], None]) -> None:
        """Call callback once cancel() is called (straight away if it already
        has been).

        Callbacks are not called when the deadline passes.
        """
        with self._cancel_callbacks_lock:
            if not self._cancel_event.is_set():
                self._cancel_callbacks.append(callback)
                return

        callback()

    @property
    def cancelled(self) -> bool:
        if self._cancel_event.is_set():
            return True

        return self._deadline is not None and time.monotonic() >= self._deadline

    @property
    def remaining(self) -> float | None:
        """Seconds until the deadline (None if the scope has no deadline)."""
        if self._deadline is None:
            return None

        return max(0.0, self._deadline - time.monotonic())

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the scope is cancelled, or timeout elapses.

        Returns True if the scope is cancelled.
        """
        remaining = self.remaining

        if remaining is not None and (timeout is None or remaining < timeout):
            timeout = remaining

        self._cancel_event.wait(timeout)

        return self.cancelled

    def __enter__(self):
        return self

    def __exit__(self, *exc_info):
        self.cancel()


class ConcurrentRegistry(Generic[K, V]):
    """A thread-safe mapping with load-or-store semantics.

    The first value stored for a key wins; later stores for the same key
    return the existing value.
    """
    def __init__(self):
        self._items: dict[K, V] = {}
        self._lock = threading.Lock()

    def load_or_store(self, key: K, value: V) -> tuple[V, bool]:
        """Store value under key unless the key is already present.

        Returns the value now stored under key, and whether it was already
        present (True) or has just been stored (False).
        """
        with self._lock:
            try:
                return self._items[key], True
            except KeyError:
                self._items[key] = value

                return value, False

    def get(self, key: K, default: V | None = None) -> V | None:
        with self._lock:
            return self._items.get(key, default)

    def pop(self, key: K, default: V | None = None) -> V | None:
        with self._lock:
            return self._items.pop(key, default)

    def values(self) -> list[V]:
        with self._lock:
            return list(self._items.values())

    def __contains__(self, key: K) -> bool:
        with self._lock:
            return key in self._items

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)


class SubscriptionRenewalThread(StoppableThread):
    def __init__(
        self,
        subscriber,
        subscriptions: Iterable,
        renewal_buffer: int = 10,
        check_interval: float = 1,
        resubscribe_retry_delay: int = 10,
        *args,
        **kwargs,
    ):
        """Thread to keep GENA subscriptions alive.

        Each of the given SubscriptionOptions (which must already have been
        subscribed, i.e. have a SID) is renewed via subscriber.renew() shortly
        before its timeout elapses. If a renewal fails (e.g. the device has
        already dropped the subscription), a new subscription is made via
        subscriber.subscribe() instead.

        Note: This class does not act on incoming events. It merely keeps the
        subscriptions alive.
        """
        super().__init__(*args, **kwargs)

        self.name = "ZoneLink-RenewalThread"
        self.daemon = True

        self._subscriber = subscriber
        self._subscriptions = list(subscriptions)
        self._renewal_buffer = renewal_buffer
        self._check_interval = check_interval
        self._resubscribe_retry_delay = resubscribe_retry_delay

        now = time.monotonic()
        self._next_renewal = [
            now + options.renewal_timeout for options in self._subscriptions
        ]

    def run(self):
        while not self.stop_event.wait(self._check_interval):
            self.renew_subscriptions_if_required()

        logger.info("Subscription renewal thread ended")

    def renew_subscriptions_if_required(self, now: float | None = None) -> None:
        """Renew (or re-establish) any subscriptions which are about to lapse."""
        now = time.monotonic() if now is None else now

        for index, options in enumerate(self._subscriptions):
            if now <= self._next_renewal[index] - self._renewal_buffer:
                continue

            service_name = getattr(options.service, "name", options.service)

            try:
                logger.info(f"Renewing subscription {options.sid} for {service_name}")
                self._subscriber.renew(options)
                self._next_renewal[index] = now + options.renewal_timeout
            except (ZoneLinkError, requests.RequestException, OSError) as e:
                logger.warning(
                    f"Could not renew subscription {options.sid} for "
                    + f"{service_name} ({e}); re-subscribing"
                )

                try:
                    self._subscriber.subscribe(options)
                    self._next_renewal[index] = now + options.renewal_timeout
                except (ZoneLinkError, requests.RequestException, OSError) as e:
                    logger.error(
                        f"Could not re-subscribe to {service_name}: {e}. Will "
                        + f"try again in {self._resubscribe_retry_delay} seconds."
                    )
                    self._next_renewal[index] = (
                        now + self._resubscribe_retry_delay + self._renewal_buffer
                    )


# -----------------------------------------------------------------------------
# Functions

def get_local_ip_for(host: str, port: int, timeout: float = HTTP_TIMEOUT) -> str:
    """Determine the local IP address used to reach the given host and port.

    A short-lived TCP connection is made to the host; the connection's local
    address is the address the host can use to reach this process.
    """
    with socket.create_connection((host, port), timeout=timeout) as connection:
        return connection.getsockname()[0]
