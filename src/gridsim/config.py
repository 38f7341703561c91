from __future__ import annotations
from enum import Enum
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, model_validator

from gridsim.errors import ConfigurationError
from gridsim.state import Side


class OvertimeMode(str, Enum):
    SUDDEN_DEATH = "sudden_death"
    TIMED_PERIOD = "timed_period"
    NONE = "none"


class RulesCfg(BaseModel):
    quarter_length: int = Field(900, gt=0, le=3600)
    overtime_mode: OvertimeMode = OvertimeMode.SUDDEN_DEATH
    overtime_length: int = Field(600, gt=0, le=3600)
    overtime_periods: int = Field(1, ge=0)
    touchback_spot: int = Field(25, ge=1, le=50)
    max_field_goal_distance: int = Field(65, ge=18, le=80)
    timeouts_per_half: int = Field(3, ge=0, le=3)
    two_minute_warning: bool = True
    # None: overtime goes to the team that received the opening kickoff
    overtime_receiver: Optional[Side] = None


class ResolverCfg(BaseModel):
    momentum_affects_odds: bool = False
    momentum_weight: float = Field(1.0, ge=0.0, le=5.0)
    penalty_rate: float = Field(0.04, ge=0.0, le=0.5)
    fumble_rate: float = Field(0.012, ge=0.0, le=0.5)


class GameConfig(BaseModel):
    seed: int = 42
    rules: RulesCfg = RulesCfg()
    resolver: ResolverCfg = ResolverCfg()

    @model_validator(mode="after")
    def _check_overtime(self) -> "GameConfig":
        if self.rules.overtime_mode is not OvertimeMode.NONE and self.rules.overtime_periods == 0:
            raise ValueError("overtime_periods must be >= 1 when overtime is enabled")
        return self


def build_config(raw: dict[str, Any] | None = None) -> GameConfig:
    """Validate a raw mapping into a GameConfig, raising ConfigurationError."""
    try:
        return GameConfig.model_validate(raw or {})
    except ValidationError as e:
        raise ConfigurationError(str(e)) from e


def load_config(path: str) -> GameConfig:
    with open(path, "r") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path}: expected a mapping at the top level")
    return build_config(raw)
