"""
XP curve for the leveling system.

Reaching level ``n`` from ``n - 1`` costs ``round(100 * n ** 1.5)`` XP, and
levels are derived from a member's cumulative XP. Rounding is half-up to
match the formula the bot has always used.
"""

import math


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def xp_required_for_level(level: int) -> int:
    """XP needed to go from ``level - 1`` to ``level``. Level 0 costs nothing."""
    if level <= 0:
        return 0
    return _round_half_up(100 * level ** 1.5)


def total_xp_for_level(level: int) -> int:
    """Cumulative XP at which ``level`` is reached."""
    return sum(xp_required_for_level(i) for i in range(1, level + 1))


def level_from_xp(xp: int) -> int:
    """Highest level whose cumulative threshold is ``<= xp``."""
    level = 0
    threshold = xp_required_for_level(1)
    while xp >= threshold:
        level += 1
        threshold += xp_required_for_level(level + 1)
    return level


def xp_to_next_level(xp: int) -> int:
    """XP still missing before the next level; never negative."""
    return total_xp_for_level(level_from_xp(xp) + 1) - xp
