import pytest

from traffic_survey.utils.rounding import round1, round_half_away, round_int


@pytest.mark.parametrize(
    "value, digits, expected",
    [
        (2.5, 0, 3.0),
        (-2.5, 0, -3.0),
        (0.5, 0, 1.0),
        (30.25, 1, 30.3),
        (-30.25, 1, -30.3),
        (1.005, 2, 1.01),
    ],
)
def test_round_half_away(value, digits, expected):
    assert round_half_away(value, digits) == expected


def test_helpers():
    assert round1(34.95) == 35.0
    assert round_int(46.5) == 47
    assert isinstance(round_int(12.0), int)
