"""
Time formatting and surface mapping tests.
"""

import pytest

from video_sampler.timeutils import dx_to_dt, format_time, time_to_x, x_to_time


class TestFormatTime:
    def test_minutes(self):
        assert format_time(65.25) == "01:05.250"

    def test_hours(self):
        assert format_time(3661.5) == "01:01:01.500"

    def test_bad_input_is_zero(self):
        assert format_time(-3.0) == "00:00.000"
        assert format_time(float("nan")) == "00:00.000"


class TestMapping:
    def test_x_to_time_clamps(self):
        assert x_to_time(250, 1000, 10.0) == pytest.approx(2.5)
        assert x_to_time(-50, 1000, 10.0) == 0.0
        assert x_to_time(5000, 1000, 10.0) == 10.0
        assert x_to_time(10, 1000, 0.0) == 0.0

    def test_time_to_x(self):
        assert time_to_x(2.5, 1000, 10.0) == pytest.approx(250.0)

    def test_dx_to_dt(self):
        assert dx_to_dt(-100, 1000, 10.0) == pytest.approx(-1.0)
