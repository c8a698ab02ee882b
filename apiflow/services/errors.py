"""
Service layer exceptions.

These carry failure context inside the attempt loop of the client. They are
converted to ``ApiError`` values before anything is returned to callers.
"""


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, url: str | None = None):
        self.url = url
        super().__init__(message)


class TransportError(ServiceError):
    """The request never produced an HTTP response."""

    pass


class RequestTimeoutError(TransportError):
    """Request timed out."""

    def __init__(self, url: str, timeout: float):
        self.timeout = timeout
        super().__init__(f"Request to '{url}' timed out after {timeout}s", url=url)


class ServerError(ServiceError):
    """The server answered with a 5xx status."""

    def __init__(self, message: str, status: int, url: str | None = None):
        self.status = status
        super().__init__(message, url=url)


class ResponseParseError(ServiceError):
    """A response body could not be decoded per its content type."""

    def __init__(self, message: str, status: int, url: str | None = None):
        self.status = status
        super().__init__(message, url=url)


class RequestAbortedError(ServiceError):
    """A shared in-flight request was cancelled, e.g. by client shutdown."""

    def __init__(self, key: str):
        self.key = key
        super().__init__(f"Request '{key}' was aborted")
