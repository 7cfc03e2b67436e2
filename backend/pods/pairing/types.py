"""
Immutable records for archived rounds.

Tables are frozen into TableRecord snapshots when a round is superseded.
Records are plain pydantic models, so archives serialize with
model_dump(mode="json") and never change after being appended.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

BYE_TABLE_NUMBER = 99


class ParticipantRecord(BaseModel):
    """Value copy of a participant as seated at one table."""

    model_config = ConfigDict(frozen=True)

    participant_id: str
    name: str
    character: str = ""
    points: int = 0
    joined_at: datetime
    dropped: bool = False
    seat_order: int = 0
    custom_group_id: str = ""
    auto_fill: bool = False


class TableRecord(BaseModel):
    """Value copy of one table."""

    model_config = ConfigDict(frozen=True)

    table_number: int
    round_number: int
    participants: tuple[ParticipantRecord, ...] = ()
    winner_id: str | None = None
    is_draw: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None
    round_started: bool = False
    statistics: dict[str, Any] = Field(default_factory=dict)
    is_custom: bool = False
    auto_fill: bool = False

    @property
    def participant_ids(self) -> list[str]:
        return [p.participant_id for p in self.participants]

    @property
    def has_result(self) -> bool:
        return self.is_draw or bool(self.winner_id)

    @property
    def is_bye(self) -> bool:
        return self.table_number == BYE_TABLE_NUMBER


type ArchivedRound = tuple[TableRecord, ...]
