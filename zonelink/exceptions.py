class ZoneLinkError(Exception):
    pass


class ZoneLinkDeviceError(ZoneLinkError):
    """A zone player device issue (e.g. unusable description, not a coordinator)."""

    pass


class ZoneLinkNotFoundError(ZoneLinkError):
    """Something was not found."""

    pass


class ZoneLinkTimeoutError(ZoneLinkError):
    """Nothing was found before the deadline elapsed (or the scope was cancelled)."""

    pass


class ZoneLinkInvalidSubscriptionError(ZoneLinkError):
    """Subscription options failed validation. No request was sent."""

    pass


class ZoneLinkSubscriptionRejectedError(ZoneLinkError):
    """A device rejected a GENA SUBSCRIBE, renewal or UNSUBSCRIBE request."""

    def __init__(self, message: str, status_code: int | None = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body
