"""Error types raised by h2ok.

Every failure surfaced to callers derives from H2OKError, so the CLI can
report any of them with a single handler.
"""


class H2OKError(Exception):
    """Base class for all h2ok errors."""


class InvalidSpecification(H2OKError, ValueError):
    """The requested cluster specification is not valid.

    Raised immediately on construction and never retried.
    """


class PlatformError(H2OKError):
    """A call to the Kubernetes API failed.

    Attributes:
        status: HTTP status code returned by the API server, or None when the
            call failed before a response was received.
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status

    @property
    def not_found(self) -> bool:
        return self.status == 404

    @property
    def already_exists(self) -> bool:
        return self.status == 409


class WaitTimeout(H2OKError, TimeoutError):
    """A bounded wait ended before its condition became true."""

    def __init__(self, description: str, timeout: float, elapsed: float):
        super().__init__(f"{description} not in ready state after {elapsed:.1f} seconds (timeout {timeout}s)")
        self.description = description
        self.timeout = timeout
        self.elapsed = elapsed


class RegistrationError(H2OKError):
    """Installing, removing or awaiting the H2O custom resource definition failed."""

    @property
    def cause(self) -> BaseException | None:
        return self.__cause__


class DescriptorError(H2OKError):
    """A deployment descriptor could not be read or written."""
