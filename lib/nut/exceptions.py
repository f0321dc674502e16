"""Custom exceptions for the NUT client."""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lib.nut.protocol import ErrorCode


class NutError(Exception):
    """Base exception for all NUT client errors."""

    def __init__(self, message: str, host: str | None = None) -> None:
        """Initialize NUT error.

        Parameters
        ----------
        message : str
            Error message
        host : str | None, optional
            NUT server host if applicable, by default None
        """
        super().__init__(message)
        self.message = message
        self.host = host

    def __str__(self) -> str:
        """Return string representation of error."""
        if self.host:
            return f"[{self.host}] {self.message}"
        return self.message


class ConnectionError(NutError):
    """Raised when the connection to the server fails or is closed by it."""

    pass


class TransportError(NutError):
    """Raised when reading from or writing to the connection fails."""

    pass


class TimeoutError(NutError):
    """Raised when connect, send or read exceeds the configured timeout."""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        timeout: float | None = None,
    ) -> None:
        """Initialize timeout error.

        Parameters
        ----------
        message : str
            Error message
        host : str | None, optional
            NUT server host if applicable, by default None
        timeout : float | None, optional
            Timeout value in seconds, by default None
        """
        super().__init__(message, host)
        self.timeout = timeout


class ProtocolError(NutError):
    """Raised when the server answers a request with an ``ERR`` line."""

    def __init__(
        self,
        message: str,
        code: "ErrorCode",
        raw_code: str,
        detail: str | None = None,
        host: str | None = None,
        command: str | None = None,
    ) -> None:
        """Initialize protocol error.

        Parameters
        ----------
        message : str
            Error message
        code : ErrorCode
            Classified error code, ``ErrorCode.UNKNOWN`` for unrecognized codes
        raw_code : str
            Error code token exactly as sent by the server
        detail : str | None, optional
            Free text following the code, by default None
        host : str | None, optional
            NUT server host if applicable, by default None
        command : str | None, optional
            Request line that produced the error, by default None
        """
        super().__init__(message, host)
        self.code = code
        self.raw_code = raw_code
        self.detail = detail
        self.command = command


class AuthenticationError(ProtocolError):
    """Raised when the server refuses credentials or privileged commands."""

    pass


class UnexpectedResponseError(NutError):
    """Raised when a reply does not match the request that was sent."""

    def __init__(
        self,
        message: str,
        host: str | None = None,
        command: str | None = None,
        response: str | None = None,
    ) -> None:
        """Initialize unexpected response error.

        Parameters
        ----------
        message : str
            Error message
        host : str | None, optional
            NUT server host if applicable, by default None
        command : str | None, optional
            Request line that was sent, by default None
        response : str | None, optional
            Reply line that was received, by default None
        """
        super().__init__(message, host)
        self.command = command
        self.response = response
