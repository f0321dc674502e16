"""NUT protocol client."""

from enum import Enum

from lib.nut.config import Credentials, Endpoint
from lib.nut.exceptions import (
    ConnectionError,
    NutError,
    ProtocolError,
    UnexpectedResponseError,
)
from lib.nut.logging import log_debug, log_info, log_success, log_warn
from lib.nut.protocol import (
    InstantCommand,
    Response,
    decode_response,
    decode_var,
    encode_get_var,
    encode_instcmd,
    encode_login,
    encode_password,
    encode_username,
    expect_ok,
)
from lib.nut.transport import NutTransport


class ClientState(str, Enum):
    """Lifecycle of a client connection."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    AUTHENTICATED = "authenticated"
    FAILED = "failed"


class NutClient:
    """Client for one NUT server connection.

    Requests are strictly sequential: each request is answered by exactly one
    reply line before the next one is sent. Errors that leave the connection in
    an unknown state (timeouts, I/O failures, mismatched replies, failed
    authentication) close it and move the client to ``FAILED``. An ``ERR``
    reply to ``GET VAR`` or ``INSTCMD`` does not; later requests on the same
    connection keep working.
    """

    def __init__(
        self,
        endpoint: Endpoint,
        credentials: Credentials | None = None,
        debug: bool = False,
    ) -> None:
        """Initialize NUT client.

        Parameters
        ----------
        endpoint : Endpoint
            Server address and timeout
        credentials : Credentials | None, optional
            User allowed to run instant commands, by default None
        debug : bool, optional
            Log network traffic, by default False
        """
        self.endpoint = endpoint
        self.credentials = credentials
        self.debug = debug
        self.transport: NutTransport | None = None
        self.state = ClientState.DISCONNECTED

    @property
    def host(self) -> str:
        return self.endpoint.host

    @property
    def connected(self) -> bool:
        """Check if the client holds a usable connection."""
        return self.state in (ClientState.CONNECTED, ClientState.AUTHENTICATED)

    def connect(self) -> None:
        """Connect to the server and authenticate if credentials were given.

        Raises
        ------
        ConnectionError
            If the connection fails
        TimeoutError
            If the connection times out
        ValueError
            If the credentials cannot be sent
        AuthenticationError
            If the server rejects the credentials
        """
        if self.connected:
            return

        transport = NutTransport(
            host=self.endpoint.host,
            port=self.endpoint.port,
            timeout=self.endpoint.timeout,
            debug=self.debug,
        )
        try:
            transport.connect()
        except NutError:
            self.state = ClientState.FAILED
            raise

        self.transport = transport
        self.state = ClientState.CONNECTED
        log_info(f"Connected to {self.endpoint.host}:{self.endpoint.port}", host=self.host)

        if self.credentials is not None:
            try:
                self.authenticate()
            except Exception:
                self._fail()
                raise

    def authenticate(self) -> None:
        """Send ``USERNAME`` and, if set, ``PASSWORD``.

        Raises
        ------
        ValueError
            If the client has no credentials
        AuthenticationError
            If the server answers either request with ``ERR``
        UnexpectedResponseError
            If the server answers with anything but ``OK``
        """
        if self.credentials is None:
            raise ValueError("No credentials configured")
        if self.state is ClientState.AUTHENTICATED:
            return

        self._exchange_ok(encode_username(self.credentials.username), auth=True)
        if self.credentials.password is not None:
            self._exchange_ok(encode_password(self.credentials.password), auth=True)

        self.state = ClientState.AUTHENTICATED
        log_debug(f"Authenticated as {self.credentials.username}", host=self.host)

    def login(self, ups: str) -> None:
        """Register this session as a client of a UPS (``LOGIN``).

        Raises
        ------
        AuthenticationError
            If the server refuses the login
        """
        self._exchange_ok(encode_login(ups), auth=True)
        log_debug("Logged in", host=self.host, ups=ups)

    def get_var(self, ups: str, name: str) -> str:
        """Read a variable.

        Parameters
        ----------
        ups : str
            UPS name
        name : str
            Variable name, e.g. ``input.voltage``

        Returns
        -------
        str
            Raw value exactly as sent between the quotes

        Raises
        ------
        ValueError
            If the UPS or variable name cannot be sent
        ProtocolError
            If the server answers with ``ERR``
        UnexpectedResponseError
            If the reply is not for this UPS and variable
        """
        command = encode_get_var(ups, name)
        response = self._request(command)
        try:
            value = decode_var(response, ups, name, command, host=self.host)
        except UnexpectedResponseError:
            self._fail()
            raise
        except ProtocolError as e:
            log_warn(f"{name}: {e.raw_code}", host=self.host, ups=ups)
            raise

        log_debug(f"{name} = {value}", host=self.host, ups=ups)
        return value

    def run_command(self, ups: str, command: InstantCommand) -> None:
        """Run an instant command.

        Parameters
        ----------
        ups : str
            UPS name
        command : InstantCommand
            Command to run

        Raises
        ------
        ValueError
            If the command is not an :class:`InstantCommand`
        AuthenticationError
            If the session lacks the privilege to run the command
        ProtocolError
            If the server answers with another ``ERR``
        UnexpectedResponseError
            If the reply is not ``OK``
        """
        line = encode_instcmd(ups, command)
        self._exchange_ok(line)
        log_success(f"{InstantCommand(command).value} accepted", host=self.host, ups=ups)

    def disconnect(self) -> None:
        """Log out and close the connection. Never raises."""
        transport = self.transport
        self.transport = None
        if transport is None:
            self.state = ClientState.DISCONNECTED
            return

        try:
            if self.connected:
                transport.send_line("LOGOUT")
                transport.read_line()
        except Exception as e:
            log_debug(f"Logout failed: {e!r}", host=self.host)
        finally:
            transport.close()
            self.state = ClientState.DISCONNECTED

    def _request(self, command: str) -> Response:
        """Send one request line and decode its reply."""
        transport = self._require_transport()
        try:
            transport.send_line(command)
            line = transport.read_line()
        except Exception:
            self._fail()
            raise
        return decode_response(line)

    def _exchange_ok(self, command: str, auth: bool = False) -> None:
        """Send a request that must be answered with ``OK``.

        With ``auth`` set any failure is fatal to the connection.
        """
        response = self._request(command)
        try:
            expect_ok(response, command, host=self.host, auth=auth)
        except UnexpectedResponseError:
            self._fail()
            raise
        except ProtocolError:
            if auth:
                self._fail()
            raise

    def _require_transport(self) -> NutTransport:
        if self.transport is None:
            if self.state is ClientState.FAILED:
                raise ConnectionError(
                    "Connection was closed after an earlier failure",
                    host=self.host,
                )
            raise ConnectionError("Not connected to server", host=self.host)
        return self.transport

    def _fail(self) -> None:
        """Force-close the connection after an unrecoverable error."""
        self.state = ClientState.FAILED
        transport = self.transport
        self.transport = None
        if transport is not None:
            transport.close()

    def __enter__(self) -> "NutClient":
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        """Context manager exit."""
        self.disconnect()
