"""
FireChain - Geo Codec
Converts decimal-degree coordinates to the fixed-point integers stored on
the ledger and back.

Encoding keeps six decimal digits and truncates with floor, exactly as
reports have always been written to the ledger. The round trip
``decode(encode(lat, lng))`` is therefore lossy beyond the sixth decimal
digit: the decoded value is never above the input and is less than
0.000001 below it. Rounding would break compatibility with stored reports.
"""

import math
from dataclasses import dataclass
from decimal import Decimal, ROUND_FLOOR
from typing import Tuple

from src.core.constants import GEO_SCALE, MAX_LATITUDE, MAX_LONGITUDE
from src.core.exceptions import OutOfRangeError


@dataclass(frozen=True)
class BoundingBox:
    """Geographic bounding box."""
    west: float   # min longitude
    south: float  # min latitude
    east: float   # max longitude
    north: float  # max latitude

    def contains(self, latitude: float, longitude: float) -> bool:
        """Check if a point is within the bounding box."""
        return (
            self.west <= longitude <= self.east and
            self.south <= latitude <= self.north
        )

    def to_tuple(self) -> Tuple[float, float, float, float]:
        return (self.west, self.south, self.east, self.north)


def _check_coordinate(name: str, value: float, limit: float) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise OutOfRangeError(
            f"{name} must be a number, got {type(value).__name__}",
            {name: repr(value)},
        )
    if not math.isfinite(value) or abs(value) > limit:
        raise OutOfRangeError(
            f"{name} {value} outside [-{limit}, {limit}]",
            {name: value},
        )


def validate_coordinates(latitude: float, longitude: float) -> None:
    """
    Check that coordinates are within range.

    Raises:
        OutOfRangeError: If |latitude| > 90 or |longitude| > 180
    """
    _check_coordinate("latitude", latitude, MAX_LATITUDE)
    _check_coordinate("longitude", longitude, MAX_LONGITUDE)


def _to_fixed(value: float) -> int:
    # Work on the decimal repr so 44.428012 encodes to 44428012 and not
    # 44428011 through binary float error.
    scaled = Decimal(repr(value)) * GEO_SCALE
    return int(scaled.to_integral_value(rounding=ROUND_FLOOR))


def encode(latitude: float, longitude: float) -> Tuple[int, int]:
    """
    Encode decimal degrees as fixed-point integers.

    Args:
        latitude: Latitude in decimal degrees
        longitude: Longitude in decimal degrees

    Returns:
        (lat_int, lng_int) scaled by 10^6 and floored

    Raises:
        OutOfRangeError: If a coordinate is out of range or not finite
    """
    validate_coordinates(latitude, longitude)
    return _to_fixed(latitude), _to_fixed(longitude)


def decode(lat_int: int, lng_int: int) -> Tuple[float, float]:
    """
    Decode fixed-point integers back to decimal degrees.

    Args:
        lat_int: Latitude scaled by 10^6
        lng_int: Longitude scaled by 10^6

    Returns:
        (latitude, longitude) in decimal degrees
    """
    return lat_int / GEO_SCALE, lng_int / GEO_SCALE
