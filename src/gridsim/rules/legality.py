from __future__ import annotations
from typing import Optional

from gridsim.constants import (
    FG_SNAP_AND_HOLD_YARDS, KNEEL_WINDOW_S, MAX_DOWN, MAX_YARDLINE, REGULATION_QUARTERS,
)
from gridsim.plays import PlayType


def kick_distance(yard_line: int) -> int:
    return MAX_YARDLINE - yard_line + FG_SNAP_AND_HOLD_YARDS


def illegal_reason(
    play_type: PlayType,
    *,
    down: int,
    yard_line: int,
    quarter: int,
    clock: int,
    margin: int,
    is_try: bool,
    max_field_goal_distance: int,
) -> Optional[str]:
    """Why `play_type` cannot be called in this situation, or None if it can."""
    if is_try != play_type.is_try:
        if is_try:
            return f"{play_type.value} is not a conversion attempt"
        return f"{play_type.value} is only legal after a touchdown"
    if play_type is PlayType.FIELD_GOAL and kick_distance(yard_line) > max_field_goal_distance:
        return f"{kick_distance(yard_line)}-yard field goal is out of range"
    if play_type is PlayType.KNEEL:
        late = quarter == 2 or quarter >= REGULATION_QUARTERS
        if margin <= 0 or not late or clock > KNEEL_WINDOW_S:
            return "kneel requires a lead late in a half"
    if play_type is PlayType.SPIKE and down == MAX_DOWN:
        return "cannot spike on fourth down"
    return None
