import struct

import pytest

from sntpclock import codec
from sntpclock.errors import InvalidArgument, MalformedPacket
from sntpclock.message import (
    LI_ALARM,
    MODE_RESERVED_PRIVATE,
    MODE_SERVER,
    PACKET_LEN,
    VN_3,
    Message,
)
from sntpclock.timestamp import Timestamp


def test_default_request_layout():
    data = codec.encode(Message(transmit_timestamp=Timestamp(3_900_000_000, 0x80000000)))
    assert len(data) == PACKET_LEN
    assert data[0] == 0x23  # LI=0, VN=4, Mode=3
    assert data[1:4] == b"\x00\x00\x00"
    assert data[12:16] == b"LOCL"
    assert data[16:40] == bytes(24)
    assert struct.unpack("!II", data[40:48]) == (3_900_000_000, 0x80000000)


def test_decode_known_packet():
    data = struct.pack(
        "!4B2i4s8I",
        (LI_ALARM << 6) | (VN_3 << 3) | MODE_SERVER,
        2,
        6,
        0xEC,
        0x00018000,
        -0x00008000,
        b"GPS\x00",
        1, 2, 3, 4, 5, 6, 7, 8,
    )
    message = codec.decode(data)
    assert message.leap_indicator == LI_ALARM
    assert message.version_number == VN_3
    assert message.mode == MODE_SERVER
    assert message.stratum == 2
    assert message.poll_interval == 6
    assert message.precision == 0xEC
    assert message.root_delay == 1.5
    assert message.root_dispersion == -0.5
    assert message.reference_identifier == b"GPS\x00"
    assert message.reference_timestamp == Timestamp(1, 2)
    assert message.originate_timestamp == Timestamp(3, 4)
    assert message.receive_timestamp == Timestamp(5, 6)
    assert message.transmit_timestamp == Timestamp(7, 8)


@pytest.mark.parametrize("byte_value", [0x00, 0xFF])
@pytest.mark.parametrize("fraction", [0, (1 << 32) - 1])
def test_round_trip_boundaries(byte_value, fraction):
    message = Message(
        leap_indicator=3,
        version_number=7,
        mode=MODE_RESERVED_PRIVATE,
        stratum=byte_value,
        poll_interval=byte_value,
        precision=byte_value,
        root_delay=-2.25,
        root_dispersion=32767.5,
        reference_identifier=bytes([byte_value] * 4),
        reference_timestamp=Timestamp(0, fraction),
        originate_timestamp=Timestamp(1, fraction),
        receive_timestamp=Timestamp((1 << 32) - 1, fraction),
        transmit_timestamp=Timestamp(3_900_000_000, fraction),
    )
    assert codec.decode(codec.encode(message)) == message


def test_round_trip_default_message():
    assert codec.decode(codec.encode(Message())) == Message()


def test_reference_identifier_is_padded_and_truncated():
    assert codec.encode(Message(reference_identifier=b"AB"))[12:16] == b"AB\x00\x00"
    assert codec.encode(Message(reference_identifier=b"ABCDEF"))[12:16] == b"ABCD"


def test_decode_short_buffer():
    with pytest.raises(MalformedPacket):
        codec.decode(bytes(PACKET_LEN - 1))


def test_decode_ignores_trailing_authenticator():
    data = codec.encode(Message(stratum=1)) + bytes(20)
    assert codec.decode(data) == Message(stratum=1)


def test_decode_accepts_bytearray():
    assert codec.decode(bytearray(codec.encode(Message()))) == Message()


@pytest.mark.parametrize(
    "fields",
    [
        {"root_delay": float("nan")},
        {"root_dispersion": float("inf")},
        {"reference_identifier": "LOCL"},
        {"leap_indicator": 4},
        {"version_number": 8},
        {"mode": -1},
        {"stratum": 256},
        {"root_delay": 40000.0},
    ],
)
def test_encode_rejects_out_of_range_fields(fields):
    with pytest.raises(InvalidArgument):
        codec.encode(Message(**fields))
