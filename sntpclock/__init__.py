"""SNTP (RFC 2030) client: wire codec, background listener, offset queries and a periodic service."""

from .client import DEFAULT_TIMEOUT, Client, SntpResult, compute_delay, compute_offset
from .clock import network_time, parse_server
from .errors import (
    IllegalState,
    InvalidArgument,
    MalformedPacket,
    NetworkError,
    NotSynchronized,
    SntpError,
    Timeout,
)
from .message import SNTP_PORT, Message
from .service import Service
from .timestamp import Timestamp

__all__ = [
    "DEFAULT_TIMEOUT",
    "SNTP_PORT",
    "Client",
    "IllegalState",
    "InvalidArgument",
    "MalformedPacket",
    "Message",
    "NetworkError",
    "NotSynchronized",
    "Service",
    "SntpError",
    "SntpResult",
    "Timeout",
    "Timestamp",
    "compute_delay",
    "compute_offset",
    "network_time",
    "parse_server",
]
