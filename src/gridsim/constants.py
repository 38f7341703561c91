from __future__ import annotations

# Situational thresholds
THIRD_AND_LONG_YTG = 7
FIRST_AND_TEN_YTG = 10
SHORT_YTG = 2
TWO_MINUTE_WARNING_S = 120
KNEEL_WINDOW_S = 120

# Field context
RED_ZONE_YARD = 80          # offense yard line at which the red zone begins
MAX_YARDLINE = 100
MAX_DOWN = 4
REGULATION_QUARTERS = 4
TRY_YARDLINE = 98
MISSED_FG_MIN_SPOT = 20
FG_SNAP_AND_HOLD_YARDS = 17

# Scoring
TOUCHDOWN_POINTS = 6
FIELD_GOAL_POINTS = 3
SAFETY_POINTS = 2
EXTRA_POINT_POINTS = 1
TWO_POINT_POINTS = 2

# Clock (seconds)
OVERTIME_TIMEOUTS = 2
PLAY_SECONDS = {"normal": (20, 35), "hurry_up": (15, 25), "slow": (35, 45)}
LIVE_BALL_SECONDS = (4, 8)
KICK_SECONDS = (5, 8)
SPIKE_SECONDS = 3
KNEEL_SECONDS = 40

# Momentum
MOMENTUM_NEUTRAL = 50.0
MOMENTUM_MAX = 100.0
MOMENTUM_MIN = 0.0
BIG_PLAY_YARDS = 20
