"""Per-session pairing and round settings."""

from __future__ import annotations

from datetime import timedelta
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field


class PairingScoreMode(StrEnum):
    """Which participants a candidate's repeat-pairing score is measured against."""

    COMMITTED = "committed"  # only members already seated at the forming table
    FULL_POOL = "full_pool"  # committed members plus every other remaining candidate


class FairnessBonus(StrEnum):
    """How participants who sat at 3-seat tables are compensated."""

    PROGRESSIVE = "progressive"  # doubles per past 3-seat placement, capped at 32x
    FLAT = "flat"  # 3x for anyone at a 3-seat table last round


class PointsSchema(BaseModel):
    """Points awarded when a round is archived."""

    model_config = ConfigDict(frozen=True)

    use_points: bool = False
    win: int = 3
    draw: int = 1
    loss: int = 0
    bye: int = 3


class PodSettings(BaseModel):
    """
    Mutable-by-replacement session settings.

    The model is frozen; hosts change settings by swapping in a copy
    produced with model_copy(update=...) before the first round starts.
    """

    model_config = ConfigDict(frozen=True)

    allow_three_seat_tables: bool = True
    extra_three_seat_penalty: bool = False
    prioritize_winners: bool = True
    allow_join_after_start: bool = True
    allow_custom_groups: bool = False
    round_duration: timedelta = timedelta(minutes=90)
    points: PointsSchema = Field(default_factory=PointsSchema)
    max_rounds: int = Field(default=0, ge=0)  # 0 means unlimited
    max_table_size: int = Field(default=4, ge=3, le=4)

    pairing_score: PairingScoreMode = PairingScoreMode.FULL_POOL
    fairness_bonus: FairnessBonus = FairnessBonus.PROGRESSIVE
