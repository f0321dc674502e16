"""NUT wire protocol encoding and decoding.

Pure functions and constants only; nothing in this module touches a socket.
Every reply line goes through :func:`decode_response`, which is the single
place where ``ERR`` lines are recognized and classified.
"""

import re
from dataclasses import dataclass
from enum import Enum

from lib.nut.exceptions import (
    AuthenticationError,
    ProtocolError,
    UnexpectedResponseError,
)

DEFAULT_PORT = 3493

# Names sent as bare tokens: no whitespace, quotes, backslashes or control chars
_NAME_PATTERN = re.compile(r'[^\s"\\\x00-\x1f\x7f]+')


class ErrorCode(str, Enum):
    """Error codes a NUT server may send in an ``ERR`` reply."""

    ACCESS_DENIED = "ACCESS-DENIED"
    UNKNOWN_UPS = "UNKNOWN-UPS"
    VAR_NOT_SUPPORTED = "VAR-NOT-SUPPORTED"
    CMD_NOT_SUPPORTED = "CMD-NOT-SUPPORTED"
    INVALID_ARGUMENT = "INVALID-ARGUMENT"
    INSTCMD_FAILED = "INSTCMD-FAILED"
    UNKNOWN_COMMAND = "UNKNOWN-COMMAND"
    USERNAME_REQUIRED = "USERNAME-REQUIRED"
    PASSWORD_REQUIRED = "PASSWORD-REQUIRED"
    INVALID_USERNAME = "INVALID-USERNAME"
    INVALID_PASSWORD = "INVALID-PASSWORD"
    ALREADY_SET_USERNAME = "ALREADY-SET-USERNAME"
    ALREADY_SET_PASSWORD = "ALREADY-SET-PASSWORD"
    ALREADY_LOGGED_IN = "ALREADY-LOGGED-IN"
    DRIVER_NOT_CONNECTED = "DRIVER-NOT-CONNECTED"
    DATA_STALE = "DATA-STALE"
    TOO_LONG = "TOO-LONG"
    FEATURE_NOT_SUPPORTED = "FEATURE-NOT-SUPPORTED"
    FEATURE_NOT_CONFIGURED = "FEATURE-NOT-CONFIGURED"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def from_token(cls, token: str) -> "ErrorCode":
        """Classify a raw error code token.

        Parameters
        ----------
        token : str
            Code token as sent by the server

        Returns
        -------
        ErrorCode
            Matching member, or ``ErrorCode.UNKNOWN`` if the code is not known
        """
        try:
            return cls(token)
        except ValueError:
            return cls.UNKNOWN


# Codes that mean the session lacks the privilege to run a command
AUTHORIZATION_CODES = frozenset(
    {
        ErrorCode.ACCESS_DENIED,
        ErrorCode.USERNAME_REQUIRED,
        ErrorCode.PASSWORD_REQUIRED,
        ErrorCode.INVALID_USERNAME,
        ErrorCode.INVALID_PASSWORD,
    }
)


class InstantCommand(str, Enum):
    """Instant commands this client is allowed to send."""

    LOAD_ON = "load.on"
    LOAD_OFF = "load.off"


class UsageType(str, Enum):
    """Telemetry readings available from the command line."""

    VOLTAGE_IN = "voltage_in"
    VOLTAGE_OUT = "voltage_out"
    CURRENT_OUT = "current_out"
    POWER = "power"

    @classmethod
    def from_alias(cls, value: str) -> "UsageType":
        """Resolve a usage type from its name or one of its short aliases.

        Raises
        ------
        ValueError
            If the value matches no usage type
        """
        try:
            return _USAGE_ALIASES[value]
        except KeyError:
            raise ValueError("Invalid usage type value.") from None

    @property
    def variable(self) -> str | None:
        """NUT variable holding this reading, None for derived readings."""
        return _USAGE_VARIABLES[self]


_USAGE_ALIASES: dict[str, UsageType] = {
    "vin": UsageType.VOLTAGE_IN,
    "volt_in": UsageType.VOLTAGE_IN,
    "voltage_in": UsageType.VOLTAGE_IN,
    "vout": UsageType.VOLTAGE_OUT,
    "volt_out": UsageType.VOLTAGE_OUT,
    "voltage_out": UsageType.VOLTAGE_OUT,
    "cout": UsageType.CURRENT_OUT,
    "cur_out": UsageType.CURRENT_OUT,
    "current_out": UsageType.CURRENT_OUT,
    "pwr": UsageType.POWER,
    "power": UsageType.POWER,
}

_USAGE_VARIABLES: dict[UsageType, str | None] = {
    UsageType.VOLTAGE_IN: "input.voltage",
    UsageType.VOLTAGE_OUT: "output.voltage",
    UsageType.CURRENT_OUT: "output.current",
    UsageType.POWER: None,
}


@dataclass(frozen=True)
class ErrorReply:
    """Decoded ``ERR <code> [<detail>]`` line."""

    code: ErrorCode
    raw_code: str
    detail: str | None = None


@dataclass(frozen=True)
class Response:
    """One decoded reply line.

    ``verb`` is the first token, ``payload`` the rest of the line after it.
    ``error`` is set when the line is an ``ERR`` reply.
    """

    raw: str
    verb: str
    payload: str
    error: ErrorReply | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def validate_name(value: str, what: str = "name") -> str:
    """Check that a UPS, variable or command name can be sent as one token.

    Raises
    ------
    ValueError
        If the name is empty or contains whitespace, quotes or control characters
    """
    if not isinstance(value, str) or not _NAME_PATTERN.fullmatch(value):
        raise ValueError(f"Invalid {what}: {value!r}")
    return value


def quote_argument(value: str) -> str:
    """Quote a free-form argument (username, password) the way upsd parses it."""
    if any(ch in value for ch in "\r\n\x00"):
        raise ValueError("Argument must not contain line breaks or NUL characters")
    if value and not any(ch.isspace() or ch in '"\\' for ch in value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def encode_username(username: str) -> str:
    return f"USERNAME {quote_argument(username)}"


def encode_password(password: str) -> str:
    return f"PASSWORD {quote_argument(password)}"


def encode_login(ups: str) -> str:
    return f"LOGIN {validate_name(ups, 'UPS name')}"


def encode_get_var(ups: str, name: str) -> str:
    """Build a ``GET VAR`` request line."""
    return f"GET VAR {validate_name(ups, 'UPS name')} {validate_name(name, 'variable name')}"


def encode_instcmd(ups: str, command: InstantCommand) -> str:
    """Build an ``INSTCMD`` request line.

    Only :class:`InstantCommand` members are accepted, so arbitrary command
    strings from callers never reach the server.

    Raises
    ------
    ValueError
        If ``command`` is not one of the known instant commands
    """
    cmd = InstantCommand(command)
    return f"INSTCMD {validate_name(ups, 'UPS name')} {cmd.value}"


def decode_response(line: str) -> Response:
    """Split a reply line into verb and payload, classifying ``ERR`` lines.

    Parameters
    ----------
    line : str
        Reply line without its terminator

    Returns
    -------
    Response
        Decoded reply
    """
    verb, _, payload = line.partition(" ")
    if verb != "ERR":
        return Response(raw=line, verb=verb, payload=payload)

    raw_code, _, detail = payload.partition(" ")
    error = ErrorReply(
        code=ErrorCode.from_token(raw_code),
        raw_code=raw_code,
        detail=detail or None,
    )
    return Response(raw=line, verb=verb, payload=payload, error=error)


def raise_for_error(
    response: Response,
    command: str,
    host: str | None = None,
    auth: bool = False,
) -> None:
    """Raise the typed failure for an ``ERR`` reply, do nothing otherwise.

    Parameters
    ----------
    response : Response
        Decoded reply
    command : str
        Request line that produced the reply
    host : str | None, optional
        Server host for error messages, by default None
    auth : bool, optional
        Treat every error as an authentication failure, by default False.
        Authorization codes are always reported as authentication failures.
    """
    error = response.error
    if error is None:
        return

    message = f"{_verb_of(command)} failed: {error.raw_code}"
    if error.detail:
        message = f"{message} ({error.detail})"

    exc_class = ProtocolError
    if auth or error.code in AUTHORIZATION_CODES:
        exc_class = AuthenticationError

    raise exc_class(
        message,
        code=error.code,
        raw_code=error.raw_code,
        detail=error.detail,
        host=host,
        command=_redact(command),
    )


def expect_ok(
    response: Response,
    command: str,
    host: str | None = None,
    auth: bool = False,
) -> None:
    """Check that a reply is ``OK``.

    Raises
    ------
    ProtocolError
        If the reply is an ``ERR`` line
    UnexpectedResponseError
        If the reply is anything else
    """
    raise_for_error(response, command, host=host, auth=auth)
    if response.verb != "OK":
        raise UnexpectedResponseError(
            f"Expected OK in reply to {_verb_of(command)}, got: {response.raw}",
            host=host,
            command=_redact(command),
            response=response.raw,
        )


def decode_var(
    response: Response,
    ups: str,
    name: str,
    command: str,
    host: str | None = None,
) -> str:
    """Extract the value from a ``VAR <ups> <name> "<value>"`` reply.

    The value is the exact text between the quote characters.

    Raises
    ------
    ProtocolError
        If the reply is an ``ERR`` line
    UnexpectedResponseError
        If the reply is not a ``VAR`` line for the requested UPS and variable
    """
    raise_for_error(response, command, host=host)

    prefix = f"{ups} {name} "
    payload = response.payload
    if (
        response.verb != "VAR"
        or not payload.startswith(prefix)
        or len(payload) < len(prefix) + 2
        or payload[len(prefix)] != '"'
        or not payload.endswith('"')
    ):
        raise UnexpectedResponseError(
            f"Reply does not match request {command!r}: {response.raw}",
            host=host,
            command=command,
            response=response.raw,
        )

    return payload[len(prefix) + 1 : -1]


def _verb_of(command: str) -> str:
    parts = command.split(" ")
    if parts[0] == "GET" and len(parts) > 1:
        return f"GET {parts[1]}"
    return parts[0]


def _redact(command: str) -> str:
    """Hide the secret of a PASSWORD request."""
    if command.startswith("PASSWORD "):
        return "PASSWORD ****"
    return command
