"""NTP 32.32 fixed-point timestamps and their conversion to Unix milliseconds."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Callable, ClassVar

from .errors import InvalidArgument

NTP_EPOCH_DELTA = 2208988800  # Seconds between 1900-01-01 and 1970-01-01
FRACTION_SCALE = 1 << 32
UINT32_MAX = FRACTION_SCALE - 1


def current_millis() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class Timestamp:
    seconds: int
    fraction: int

    ZERO: ClassVar[Timestamp]

    def __post_init__(self) -> None:
        if self.seconds < 0:
            raise InvalidArgument(f"seconds<0: {self.seconds}")
        if self.fraction < 0:
            raise InvalidArgument(f"fraction<0: {self.fraction}")
        if self.seconds > UINT32_MAX or self.fraction > UINT32_MAX:
            raise InvalidArgument(f"timestamp does not fit in 32.32 bits: {self}")

    def to_local_millis(self) -> int:
        """Unix milliseconds for this instant; the sub-millisecond part is dropped."""
        millis = (self.seconds - NTP_EPOCH_DELTA) * 1000
        return millis + self.fraction * 1000 // FRACTION_SCALE

    @classmethod
    def from_local_millis(cls, millis: int) -> Timestamp:
        seconds, remainder = divmod(millis, 1000)
        # Round up so that to_local_millis() gives the same millisecond back.
        fraction = -(-remainder * FRACTION_SCALE // 1000)
        return cls(seconds + NTP_EPOCH_DELTA, fraction)

    @classmethod
    def now(cls, clock: Callable[[], int] = current_millis) -> Timestamp:
        return cls.from_local_millis(clock())

    def __str__(self) -> str:
        return f"{self.seconds}.{self.fraction}"


Timestamp.ZERO = Timestamp(0, 0)
