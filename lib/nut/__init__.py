"""Client for the Network UPS Tools (NUT) protocol.

This package reads UPS telemetry (``GET VAR``) and switches the UPS load
on and off (``INSTCMD``) over a plain-text NUT server connection.
"""

__version__ = "0.1.0"

from lib.nut.client import ClientState, NutClient
from lib.nut.config import Credentials, Endpoint, NutConfig
from lib.nut.exceptions import (
    AuthenticationError,
    ConnectionError,
    NutError,
    ProtocolError,
    TimeoutError,
    TransportError,
    UnexpectedResponseError,
)
from lib.nut.protocol import ErrorCode, InstantCommand, UsageType
from lib.nut.transport import NutTransport

__all__ = [
    "NutClient",
    "ClientState",
    "NutTransport",
    "Endpoint",
    "Credentials",
    "NutConfig",
    "ErrorCode",
    "InstantCommand",
    "UsageType",
    "NutError",
    "ConnectionError",
    "TransportError",
    "TimeoutError",
    "ProtocolError",
    "AuthenticationError",
    "UnexpectedResponseError",
]
