"""Bit-exact conversion between Message and the 48-byte SNTP wire format."""

from __future__ import annotations

import struct

from .errors import InvalidArgument, MalformedPacket
from .message import PACKET_LEN, Message
from .timestamp import Timestamp

# flags, stratum, poll, precision, root delay, root dispersion, reference id,
# then seconds/fraction pairs for the reference, originate, receive and transmit timestamps
PACKET_FORMAT = "!4B2i4s8I"
FIXED_POINT_SCALE = 1 << 16


def _to_fixed_point(value: float) -> int:
    return int(value * FIXED_POINT_SCALE)


def _from_fixed_point(value: int) -> float:
    return value / FIXED_POINT_SCALE


def _flags(message: Message) -> int:
    if not 0 <= message.leap_indicator <= 3:
        raise InvalidArgument(f"leap indicator out of range: {message.leap_indicator}")
    if not 0 <= message.version_number <= 7:
        raise InvalidArgument(f"version number out of range: {message.version_number}")
    if not 0 <= message.mode <= 7:
        raise InvalidArgument(f"mode out of range: {message.mode}")
    return message.leap_indicator << 6 | message.version_number << 3 | message.mode


def encode(message: Message) -> bytes:
    flags = _flags(message)
    try:
        reference_id = bytes(message.reference_identifier[:4]).ljust(4, b"\x00")
        return struct.pack(
            PACKET_FORMAT,
            flags,
            message.stratum,
            message.poll_interval,
            message.precision,
            _to_fixed_point(message.root_delay),
            _to_fixed_point(message.root_dispersion),
            reference_id,
            message.reference_timestamp.seconds,
            message.reference_timestamp.fraction,
            message.originate_timestamp.seconds,
            message.originate_timestamp.fraction,
            message.receive_timestamp.seconds,
            message.receive_timestamp.fraction,
            message.transmit_timestamp.seconds,
            message.transmit_timestamp.fraction,
        )
    except (struct.error, ValueError, OverflowError, TypeError) as exc:
        raise InvalidArgument(f"Invalid SNTP message fields: {exc}") from exc


def decode(data: bytes) -> Message:
    if len(data) < PACKET_LEN:
        raise MalformedPacket(f"Invalid SNTP packet: too short ({len(data)} bytes)")

    (
        flags,
        stratum,
        poll,
        precision,
        root_delay,
        root_dispersion,
        reference_id,
        *timestamps,
    ) = struct.unpack(PACKET_FORMAT, bytes(data[:PACKET_LEN]))

    return Message(
        leap_indicator=flags >> 6 & 0x3,
        version_number=flags >> 3 & 0x7,
        mode=flags & 0x7,
        stratum=stratum,
        poll_interval=poll,
        precision=precision,
        root_delay=_from_fixed_point(root_delay),
        root_dispersion=_from_fixed_point(root_dispersion),
        reference_identifier=reference_id,
        reference_timestamp=Timestamp(timestamps[0], timestamps[1]),
        originate_timestamp=Timestamp(timestamps[2], timestamps[3]),
        receive_timestamp=Timestamp(timestamps[4], timestamps[5]),
        transmit_timestamp=Timestamp(timestamps[6], timestamps[7]),
    )
