"""Live participant and table state for the current round."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from pods.pairing.types import BYE_TABLE_NUMBER, ParticipantRecord, TableRecord


@dataclass
class Participant:
    """A participant in a pod session.

    The same object is referenced from the session pool and from the
    current round's tables, so label and points updates show up in both.
    """

    participant_id: str
    name: str
    joined_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    character: str = ""
    points: int = 0
    dropped: bool = False
    seat_order: int = 0
    custom_group_id: str = ""  # empty when not in a custom group
    auto_fill: bool = False

    @property
    def in_custom_group(self) -> bool:
        return bool(self.custom_group_id)

    def to_record(self) -> ParticipantRecord:
        return ParticipantRecord(
            participant_id=self.participant_id,
            name=self.name,
            character=self.character,
            points=self.points,
            joined_at=self.joined_at,
            dropped=self.dropped,
            seat_order=self.seat_order,
            custom_group_id=self.custom_group_id,
            auto_fill=self.auto_fill,
        )

    @classmethod
    def from_record(cls, record: ParticipantRecord) -> Participant:
        return cls(**record.model_dump())


@dataclass
class Table:
    """One seating of participants for one round.

    Participants keep insertion order and are unique by id.
    """

    round_number: int
    table_number: int = 0
    participants: list[Participant] = field(default_factory=list)
    winner_id: str | None = None
    is_draw: bool = False
    started_at: datetime | None = None
    completed_at: datetime | None = None
    round_started: bool = False
    statistics: dict[str, Any] = field(default_factory=dict)
    is_custom: bool = False
    auto_fill: bool = False

    @property
    def size(self) -> int:
        return len(self.participants)

    @property
    def participant_ids(self) -> list[str]:
        return [p.participant_id for p in self.participants]

    @property
    def has_result(self) -> bool:
        return self.is_draw or bool(self.winner_id)

    @property
    def is_bye(self) -> bool:
        return self.table_number == BYE_TABLE_NUMBER

    def contains(self, participant_id: str) -> bool:
        return any(p.participant_id == participant_id for p in self.participants)

    def get(self, participant_id: str) -> Participant | None:
        return next((p for p in self.participants if p.participant_id == participant_id), None)

    def add(self, participant: Participant) -> bool:
        """Seat a participant. Returns False if already seated here."""
        if self.contains(participant.participant_id):
            return False
        self.participants.append(participant)
        return True

    def remove(self, participant_id: str) -> Participant | None:
        participant = self.get(participant_id)
        if participant is not None:
            self.participants.remove(participant)
        return participant

    def set_winner(self, participant_id: str) -> None:
        self.winner_id = participant_id
        self.is_draw = False

    def set_draw(self) -> None:
        self.winner_id = None
        self.is_draw = True

    def clear_result(self) -> None:
        self.winner_id = None
        self.is_draw = False

    def to_record(self) -> TableRecord:
        return TableRecord(
            table_number=self.table_number,
            round_number=self.round_number,
            participants=tuple(p.to_record() for p in self.participants),
            winner_id=self.winner_id,
            is_draw=self.is_draw,
            started_at=self.started_at,
            completed_at=self.completed_at,
            round_started=self.round_started,
            statistics=dict(self.statistics),
            is_custom=self.is_custom,
            auto_fill=self.auto_fill,
        )
