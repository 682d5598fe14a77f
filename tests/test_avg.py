import pytest

from mxkit.avg import Average

ELEMENTS_FLOR = [99, 32, 76, 84, 93, 22, 1, 68, 90, 59]
ELEMENTS_CEIL = [99, 32, 76, 84, 93, 22, 1, 68, 90, 89]
ELEMENTS = [9, 97, 15, 6, 3, 92, 1, 99, 32, 75, 82, 64, 95]


def _feed(avg, values):
    for value in values:
        avg.add(value)
    return avg


def test_average_basic():
    avg = Average()
    assert (avg.ready(), avg.calculate()) == (False, 0)
    for _ in range(2):
        avg.add(50)
        assert (avg.ready(), avg.calculate()) == (True, 50)


@pytest.mark.parametrize(
    "options, values, expected",
    [
        ({}, ELEMENTS_CEIL, 65),
        ({}, ELEMENTS_FLOR, 62),
        ({"min_size": 3}, ELEMENTS, 66),
        ({"max_size": 3}, ELEMENTS, 38),
        ({"min_size": 3, "max_size": 3}, ELEMENTS, 53),
    ],
    ids=["ceil", "flor", "minima", "maxima", "extrema"],
)
def test_average_values(options, values, expected):
    avg = _feed(Average(**options), values)
    assert (avg.ready(), avg.calculate()) == (True, expected)


def test_extremes_hold_smallest_and_largest():
    avg = _feed(Average(min_size=3, max_size=3), ELEMENTS)
    assert sorted(avg.minima) == sorted(ELEMENTS)[:3]
    assert sorted(avg.maxima) == sorted(ELEMENTS)[-3:]


def test_not_ready_while_filling_extremes():
    avg = Average(min_size=2, max_size=2)
    for value in (10, 20, 30, 40):
        avg.add(value)
        assert not avg.ready()
    avg.add(25)
    assert (avg.ready(), avg.calculate()) == (True, 25)


@pytest.mark.parametrize("value", [-1, 1 << 32])
def test_invalid_values_rejected(value):
    with pytest.raises(ValueError):
        Average().add(value)


def test_negative_sizes_rejected():
    with pytest.raises(ValueError):
        Average(min_size=-1)