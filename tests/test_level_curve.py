import pytest

from levelcord.leveling.level_curve import (
    level_from_xp,
    total_xp_for_level,
    xp_required_for_level,
    xp_to_next_level,
)


@pytest.mark.parametrize(
    "level, expected",
    [(0, 0), (-3, 0), (1, 100), (2, 283), (3, 520), (4, 800), (5, 1118)],
)
def test_xp_required_for_level(level, expected):
    assert xp_required_for_level(level) == expected


def test_total_xp_for_level_is_cumulative():
    assert total_xp_for_level(0) == 0
    assert total_xp_for_level(1) == 100
    assert total_xp_for_level(2) == 383
    assert total_xp_for_level(3) == 903
    assert total_xp_for_level(5) == 2821


@pytest.mark.parametrize(
    "xp, expected",
    [(0, 0), (99, 0), (100, 1), (382, 1), (383, 2), (902, 2), (903, 3), (2821, 5)],
)
def test_level_from_xp_boundaries(xp, expected):
    assert level_from_xp(xp) == expected


def test_level_from_xp_matches_thresholds():
    for level in range(1, 40):
        threshold = total_xp_for_level(level)
        assert level_from_xp(threshold) == level
        assert level_from_xp(threshold - 1) == level - 1


def test_xp_to_next_level():
    assert xp_to_next_level(0) == 100
    assert xp_to_next_level(50) == 50
    assert xp_to_next_level(100) == 283
    assert xp_to_next_level(382) == 1


def test_xp_to_next_level_always_positive():
    for xp in range(0, 5000, 37):
        assert xp_to_next_level(xp) > 0


def test_xp_required_strictly_increasing():
    costs = [xp_required_for_level(level) for level in range(1, 100)]
    assert all(later > earlier for earlier, later in zip(costs, costs[1:]))


def test_level_from_xp_is_unique_bracket():
    for xp in range(0, 6000, 13):
        level = level_from_xp(xp)
        assert total_xp_for_level(level) <= xp < total_xp_for_level(level + 1)
