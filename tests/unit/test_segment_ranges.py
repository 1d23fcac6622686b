"""
Unit tests for segment range validation.
"""

import pytest

from kolla.errors import InvalidInputError
from kolla.routes.segments import validate_range


@pytest.mark.unit
class TestValidateRange:
    """Test segment bounds against the clip duration."""

    def test_valid_range(self):
        validate_range(2.0, 8.5, 30.0)

    def test_range_to_clip_end(self):
        validate_range(25.0, 30.0, 30.0)

    def test_unknown_duration_skips_upper_bound(self):
        validate_range(100.0, 200.0, None)

    @pytest.mark.parametrize("start,end,duration,message", [
        (-1.0, 5.0, 30.0, "Start time cannot be negative"),
        (5.0, 5.0, 30.0, "End time must be after start time"),
        (8.0, 4.0, 30.0, "End time must be after start time"),
        (30.0, 31.0, 30.0, "Start time is past the end of the clip"),
        (10.0, 30.5, 30.0, "End time is past the end of the clip"),
    ])
    def test_invalid_ranges(self, start, end, duration, message):
        with pytest.raises(InvalidInputError) as exc_info:
            validate_range(start, end, duration)

        assert exc_info.value.message == message
