"""The SNTP message record and the protocol constants it uses."""

from __future__ import annotations

from dataclasses import dataclass, field

from .timestamp import Timestamp

SNTP_PORT = 123
PACKET_LEN = 48
MAXIMUM_LENGTH = 384  # Receive buffer: header plus room for an authenticator

LI_NO_WARNING = 0
LI_61_SECONDS = 1
LI_59_SECONDS = 2
LI_ALARM = 3

VN_1 = 1
VN_2 = 2
VN_3 = 3
VN_4 = 4

MODE_RESERVED = 0
MODE_SYMMETRIC_ACTIVE = 1
MODE_SYMMETRIC_PASSIVE = 2
MODE_CLIENT = 3
MODE_SERVER = 4
MODE_BROADCAST = 5
MODE_RESERVED_NTP_CONTROL = 6
MODE_RESERVED_PRIVATE = 7

STRATUM_UNSPECIFIED = 0
STRATUM_PRIMARY = 1

DEFAULT_REFERENCE_IDENTIFIER = b"LOCL"

LEAP_TABLE = {
    LI_NO_WARNING: "no warning",
    LI_61_SECONDS: "last minute has 61 seconds",
    LI_59_SECONDS: "last minute has 59 seconds",
    LI_ALARM: "alarm condition (clock not synchronized)",
}

MODE_TABLE = {
    MODE_RESERVED: "reserved",
    MODE_SYMMETRIC_ACTIVE: "symmetric active",
    MODE_SYMMETRIC_PASSIVE: "symmetric passive",
    MODE_CLIENT: "client",
    MODE_SERVER: "server",
    MODE_BROADCAST: "broadcast",
    MODE_RESERVED_NTP_CONTROL: "reserved for NTP control messages",
    MODE_RESERVED_PRIVATE: "reserved for private use",
}

STRATUM_TABLE = {
    STRATUM_UNSPECIFIED: "unspecified",
    STRATUM_PRIMARY: "primary reference",
}


def describe_stratum(stratum: int) -> str:
    if stratum in STRATUM_TABLE:
        return STRATUM_TABLE[stratum]
    if stratum <= 15:
        return "secondary reference"
    return "reserved"


def describe_reference_id(reference_id: bytes, stratum: int) -> str:
    """Kiss codes and reference sources are ASCII, anything above stratum 1 is an IPv4 address."""
    if stratum <= STRATUM_PRIMARY:
        return reference_id.rstrip(b"\x00").decode("ascii", errors="replace")
    return ".".join(str(octet) for octet in reference_id[:4])


@dataclass
class Message:
    """One SNTP packet. The defaults form a ready-to-send client request."""

    leap_indicator: int = LI_NO_WARNING
    version_number: int = VN_4
    mode: int = MODE_CLIENT
    stratum: int = STRATUM_UNSPECIFIED
    poll_interval: int = 0
    precision: int = 0
    root_delay: float = 0.0
    root_dispersion: float = 0.0
    reference_identifier: bytes = DEFAULT_REFERENCE_IDENTIFIER
    reference_timestamp: Timestamp = field(default=Timestamp.ZERO)
    originate_timestamp: Timestamp = field(default=Timestamp.ZERO)
    receive_timestamp: Timestamp = field(default=Timestamp.ZERO)
    transmit_timestamp: Timestamp = field(default=Timestamp.ZERO)

    def describe(self) -> dict:
        return {
            "leap": self.leap_indicator,
            "leap_text": LEAP_TABLE.get(self.leap_indicator, "unknown"),
            "version": self.version_number,
            "mode": self.mode,
            "mode_text": MODE_TABLE.get(self.mode, "unknown"),
            "stratum": self.stratum,
            "stratum_text": describe_stratum(self.stratum),
            "poll": self.poll_interval,
            "precision": self.precision,
            "root_delay": self.root_delay,
            "root_dispersion": self.root_dispersion,
            "reference_id": describe_reference_id(self.reference_identifier, self.stratum),
            "reference_timestamp": str(self.reference_timestamp),
            "originate_timestamp": str(self.originate_timestamp),
            "receive_timestamp": str(self.receive_timestamp),
            "transmit_timestamp": str(self.transmit_timestamp),
        }
