"""
Tests for the fixed-point geo codec
"""
import math

import pytest

import sys
sys.path.insert(0, '.')

from src.core.exceptions import OutOfRangeError, ValidationError
from src.core.geo_codec import BoundingBox, decode, encode, validate_coordinates


class TestEncode:
    """Test suite for coordinate encoding."""

    def test_encode_keeps_six_digits(self):
        """Test exact six-digit coordinates encode without loss."""
        assert encode(44.428012, -110.588512) == (44428012, -110588512)

    def test_encode_floors_extra_digits(self):
        """Test extra precision is floored, not rounded."""
        assert encode(10.1234569, 20.9999999) == (10123456, 20999999)

    def test_encode_floors_negative_toward_minus_infinity(self):
        """Test negative values floor away from zero."""
        assert encode(-10.1234561, -0.0000001) == (-10123457, -1)

    def test_encode_boundaries(self):
        """Test the extreme valid coordinates."""
        assert encode(90, 180) == (90_000_000, 180_000_000)
        assert encode(-90, -180) == (-90_000_000, -180_000_000)

    def test_encode_accepts_integers(self):
        assert encode(0, 0) == (0, 0)

    def test_mock_detection_coordinates(self):
        """Test coordinates from the satellite feed."""
        assert encode(44.4280, -110.5885) == (44428000, -110588500)
        assert encode(47.8021, -123.6044) == (47802100, -123604400)

    @pytest.mark.parametrize("latitude,longitude", [
        (90.000001, 0),
        (-91, 0),
        (0, 180.5),
        (0, -181),
    ])
    def test_out_of_range_rejected(self, latitude, longitude):
        with pytest.raises(OutOfRangeError):
            encode(latitude, longitude)

    @pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
    def test_non_finite_rejected(self, value):
        with pytest.raises(OutOfRangeError):
            encode(value, 0)
        with pytest.raises(OutOfRangeError):
            encode(0, value)

    @pytest.mark.parametrize("value", ["44.4", None, True])
    def test_non_numeric_rejected(self, value):
        with pytest.raises(OutOfRangeError):
            encode(value, 0)

    def test_out_of_range_is_validation_error(self):
        """Test OutOfRangeError is reported as a validation failure."""
        with pytest.raises(ValidationError):
            validate_coordinates(100, 0)


class TestDecode:
    """Test suite for coordinate decoding."""

    def test_decode_six_decimal_coordinates(self):
        lat, lng = decode(44428012, -110588512)
        assert lat == pytest.approx(44.428012, abs=1e-9)
        assert lng == pytest.approx(-110.588512, abs=1e-9)

    @pytest.mark.parametrize("latitude,longitude", [
        (12.3456789, -45.6789012),
        (-33.8688197, 151.2092955),
        (0.0000009, -0.0000009),
        (89.9999999, -179.9999999),
    ])
    def test_round_trip_error_bounded(self, latitude, longitude):
        """Test decode(encode(x)) never exceeds x and is within 1e-6 below it."""
        lat, lng = decode(*encode(latitude, longitude))

        for original, restored in ((latitude, lat), (longitude, lng)):
            assert restored <= original + 1e-12
            assert original - restored < 1e-6 + 1e-12


class TestBoundingBox:
    """Test suite for BoundingBox."""

    def test_contains(self):
        bbox = BoundingBox(west=-125, south=30, east=-100, north=50)

        assert bbox.contains(44.428, -110.588)
        assert not bbox.contains(35.65, -83.5)

    def test_edges_are_inclusive(self):
        bbox = BoundingBox(west=-10, south=-10, east=10, north=10)

        assert bbox.contains(10, -10)
        assert bbox.to_tuple() == (-10, -10, 10, 10)
