"""Line-oriented TCP transport for NUT servers using pexpect."""

import socket

import pexpect
from pexpect.socket_pexpect import SocketSpawn

from lib.nut.exceptions import ConnectionError, TimeoutError, TransportError
from lib.nut.logging import log_debug
from lib.nut.protocol import DEFAULT_PORT

LINE_TERMINATOR = b"\n"
ENCODING = "utf-8"


class NutTransport:
    """One text stream to a NUT server with line send/receive."""

    def __init__(
        self,
        host: str,
        port: int = DEFAULT_PORT,
        timeout: float = 5.0,
        debug: bool = False,
    ) -> None:
        """Initialize transport.

        Parameters
        ----------
        host : str
            NUT server host name or IP address
        port : int, optional
            NUT server TCP port, by default 3493
        timeout : float, optional
            Connect, send and read timeout in seconds, by default 5.0
        debug : bool, optional
            Log every line sent and received, by default False
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.debug = debug
        self.process: SocketSpawn | None = None
        self._socket: socket.socket | None = None

    @property
    def connected(self) -> bool:
        """Check if the stream is open."""
        return self.process is not None

    def connect(self) -> None:
        """Open the TCP connection.

        Raises
        ------
        TimeoutError
            If the connection is not established within the timeout
        ConnectionError
            If the host cannot be resolved or refuses the connection
        """
        if self.process is not None:
            return

        try:
            sock = socket.create_connection((self.host, self.port), timeout=self.timeout)
        except socket.timeout as e:
            raise TimeoutError(
                f"Connection timeout after {self.timeout}s",
                host=self.host,
                timeout=self.timeout,
            ) from e
        except OSError as e:
            raise ConnectionError(
                f"Connection to {self.host}:{self.port} failed: {e}",
                host=self.host,
            ) from e

        self._socket = sock
        # bytes mode: SocketSpawn hands back raw recv data, lines are decoded here
        self.process = SocketSpawn(sock, timeout=self.timeout)
        self.process.logfile_read = None  # traffic is logged line by line instead
        log_debug(f"Connected to {self.host}:{self.port}", host=self.host)

    def send_line(self, text: str) -> None:
        """Send one request line.

        Parameters
        ----------
        text : str
            Line to send, without terminator

        Raises
        ------
        ValueError
            If the text contains a line break or cannot be encoded
        ConnectionError
            If not connected
        TimeoutError
            If the write does not complete within the timeout
        TransportError
            If the write fails
        """
        if "\r" in text or "\n" in text:
            raise ValueError("Request line must not contain line breaks")
        process = self._require_process()

        if self.debug:
            log_debug(f">> {_mask(text)}", host=self.host, direction="send")

        try:
            self._socket.settimeout(self.timeout)
            process.send(text.encode(ENCODING) + LINE_TERMINATOR)
        except socket.timeout as e:
            raise TimeoutError(
                f"Send timeout after {self.timeout}s",
                host=self.host,
                timeout=self.timeout,
            ) from e
        except OSError as e:
            raise TransportError(f"Send failed: {e}", host=self.host) from e

    def read_line(self) -> str:
        """Read one reply line.

        Returns
        -------
        str
            Line without its CRLF or LF terminator

        Raises
        ------
        TimeoutError
            If no complete line arrives within the timeout
        ConnectionError
            If the server closed the connection
        TransportError
            If the read fails or the line is not valid UTF-8
        """
        process = self._require_process()

        try:
            process.expect_exact(LINE_TERMINATOR, timeout=self.timeout)
        except pexpect.TIMEOUT as e:
            raise TimeoutError(
                f"No reply within {self.timeout}s",
                host=self.host,
                timeout=self.timeout,
            ) from e
        except pexpect.EOF as e:
            raise ConnectionError("Connection closed by server", host=self.host) from e
        except OSError as e:
            raise TransportError(f"Read failed: {e}", host=self.host) from e

        raw = process.before
        if raw.endswith(b"\r"):
            raw = raw[:-1]
        try:
            line = raw.decode(ENCODING)
        except UnicodeDecodeError as e:
            raise TransportError(f"Reply is not valid {ENCODING}: {raw!r}", host=self.host) from e

        if self.debug:
            log_debug(f"<< {line}", host=self.host, direction="recv")
        return line

    def close(self) -> None:
        """Release the stream. Safe to call more than once."""
        process, sock = self.process, self._socket
        self.process = None
        self._socket = None
        if process is None:
            return

        try:
            process.close()
        except Exception as e:
            log_debug(f"Error while closing connection: {e}", host=self.host)
        finally:
            if sock is not None:
                sock.close()
        log_debug("Connection closed", host=self.host)

    def _require_process(self) -> SocketSpawn:
        if self.process is None:
            raise ConnectionError("Not connected to server", host=self.host)
        return self.process

    def __enter__(self) -> "NutTransport":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.close()


def _mask(text: str) -> str:
    if text.startswith("PASSWORD "):
        return "PASSWORD ****"
    return text
