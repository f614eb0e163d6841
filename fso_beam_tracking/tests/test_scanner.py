"""
Unit tests for the raster scanner.

Tests verify:
1. Point counts and raster ordering
2. Map contents and peak after a scan
3. Cooperative cancellation
4. Handling of out-of-map points and non-finite measurements
"""

import logging

import pytest
import numpy as np
from fso_beam_tracking.core.errors import InvalidParameterError
from fso_beam_tracking.core.mapping.signal_map import SignalMap
from fso_beam_tracking.core.tracking.scanner import (
    RasterScanner,
    ScanResult,
    scan_points,
    validate_scan_request,
)


@pytest.fixture
def scanner():
    return RasterScanner(SignalMap(-0.1, 0.1, -0.1, 0.1, 0.01, 0.01))


def gaussian(azimuth, elevation, user_data=None):
    return float(np.exp(-((azimuth - 0.03) ** 2 + (elevation + 0.02) ** 2) / 0.0005))


class TestScanGeometry:
    """Test grid size and order."""

    @pytest.mark.parametrize("span, res, expected", [
        (0.2, 0.02, 11),
        (0.08, 0.002, 41),
        (0.05, 0.02, 4),
        (0.04, 0.01, 5),
    ])
    def test_scan_points(self, span, res, expected):
        assert scan_points(span, res) == expected

    def test_raster_order(self, scanner):
        visited = []

        def record(az, el, user_data):
            visited.append((az, el))
            return 0.1

        result = scanner.scan(0.0, 0.0, 0.04, 0.02, 0.01, record)

        assert (result.az_points, result.el_points) == (5, 3)
        assert result.probes == 15
        assert len(visited) == 15
        # Row by row: azimuth varies fastest
        assert visited[0] == pytest.approx((-0.02, -0.01))
        assert visited[1] == pytest.approx((-0.01, -0.01))
        assert visited[5] == pytest.approx((-0.02, 0.0))
        assert visited[-1] == pytest.approx((0.02, 0.01))

    def test_user_data_passed_through(self, scanner):
        seen = []
        scanner.scan(0.0, 0.0, 0.01, 0.01, 0.01,
                     lambda az, el, data: seen.append(data) or 0.5, user_data='link-7')
        assert seen == ['link-7'] * 4


class TestScanResults:
    """Test map contents and the reported peak."""

    def test_peak_of_gaussian(self, scanner):
        result = scanner.scan(0.0, 0.0, 0.2, 0.2, 0.01, gaussian)

        assert isinstance(result, ScanResult)
        assert result.completed
        assert result.points_scanned == 441
        assert result.peak_azimuth == pytest.approx(0.03)
        assert result.peak_elevation == pytest.approx(-0.02)
        assert result.peak_strength == pytest.approx(1.0)

    def test_clears_previous_contents(self, scanner):
        scanner.signal_map.set(-0.1, -0.1, 5.0)
        scanner.scan(0.0, 0.0, 0.02, 0.02, 0.01, lambda az, el, d: 0.2)
        assert scanner.signal_map.get(-0.1, -0.1) == 0.0

    def test_out_of_map_points_skipped(self, scanner):
        result = scanner.scan(0.1, 0.0, 0.04, 0.04, 0.01, lambda az, el, d: 0.5)

        assert result.probes == 25
        # Azimuths 0.11 and 0.12 fall outside the map
        assert result.points_scanned == 15
        assert not result.cancelled

    def test_non_finite_measurements_skipped(self, scanner, caplog):
        def flaky(az, el, user_data):
            return np.nan if az < -0.005 else 0.5

        with caplog.at_level(logging.WARNING):
            result = scanner.scan(0.0, 0.0, 0.02, 0.01, 0.01, flaky)

        assert result.probes == 6
        assert result.points_scanned == 4
        assert not result.cancelled
        assert any('non-finite' in r.getMessage() for r in caplog.records)


class TestCancellation:
    """Test callback-driven abort."""

    def test_negative_value_cancels(self, scanner):
        calls = []

        def cancel_third(az, el, user_data):
            calls.append((az, el))
            return -1.0 if len(calls) == 3 else 0.5

        result = scanner.scan(0.0, 0.0, 0.04, 0.04, 0.01, cancel_third)

        assert result.cancelled
        assert result.probes == 3
        assert result.points_scanned == 2
        assert result.peak_strength is None
        assert len(calls) == 3


class TestValidation:
    """Test parameter checks."""

    @pytest.mark.parametrize("args", [
        (0.0, 0.1, 0.01),
        (0.1, -0.1, 0.01),
        (0.1, 0.1, 0.0),
        (0.1, 0.1, np.inf),
    ])
    def test_rejects_bad_geometry(self, args):
        with pytest.raises(InvalidParameterError):
            validate_scan_request(*args)

    def test_rejects_missing_callback(self, scanner):
        with pytest.raises(InvalidParameterError):
            scanner.scan(0.0, 0.0, 0.1, 0.1, 0.01, None)

    def test_rejects_non_callable(self):
        with pytest.raises(InvalidParameterError):
            validate_scan_request(0.1, 0.1, 0.01, callback=42)
