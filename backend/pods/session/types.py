"""
Serializable session snapshots.

A SessionSnapshot is a frozen value copy of a PodSession taken under the
session lock. Snapshots are what storage persists, what events carry and
what get_session returns, so callers never hold live mutable state.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from pods.pairing.models import Participant, Table
from pods.pairing.settings import PodSettings
from pods.pairing.types import ArchivedRound, ParticipantRecord, TableRecord
from pods.session.models import PodSession


class SessionSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    host_id: str
    event_name: str = ""
    created_at: datetime
    expires_at: datetime
    settings: PodSettings = Field(default_factory=PodSettings)
    current_round: int = 0
    participants: tuple[ParticipantRecord, ...] = ()
    tables: tuple[TableRecord, ...] | None = None
    archive: tuple[ArchivedRound, ...] = ()
    started: bool = False
    ended: bool = False
    archived: bool = False
    revision: int = 0

    @classmethod
    def from_session(cls, session: PodSession) -> SessionSnapshot:
        return cls(
            code=session.code,
            host_id=session.host_id,
            event_name=session.event_name,
            created_at=session.created_at,
            expires_at=session.expires_at,
            settings=session.settings,
            current_round=session.current_round,
            participants=tuple(p.to_record() for p in session.participants.values()),
            tables=None if session.tables is None else tuple(t.to_record() for t in session.tables),
            archive=tuple(session.archive),
            started=session.started,
            ended=session.ended,
            archived=session.archived,
            revision=session.revision,
        )

    def to_session(self) -> PodSession:
        """Rebuild a live session.

        Tables reference the same Participant objects as the pool, so
        label and points updates reach both. Dropped participants still
        seated at a current table get their own object.
        """
        pool = {record.participant_id: Participant.from_record(record) for record in self.participants}
        tables = None
        if self.tables is not None:
            tables = [_table_from_record(record, pool) for record in self.tables]
        return PodSession(
            code=self.code,
            host_id=self.host_id,
            created_at=self.created_at,
            expires_at=self.expires_at,
            settings=self.settings,
            event_name=self.event_name,
            current_round=self.current_round,
            participants=pool,
            tables=tables,
            archive=list(self.archive),
            started=self.started,
            ended=self.ended,
            archived=self.archived,
            revision=self.revision,
        )


def _table_from_record(record: TableRecord, pool: dict[str, Participant]) -> Table:
    table = Table(
        round_number=record.round_number,
        table_number=record.table_number,
        winner_id=record.winner_id,
        is_draw=record.is_draw,
        started_at=record.started_at,
        completed_at=record.completed_at,
        round_started=record.round_started,
        statistics=dict(record.statistics),
        is_custom=record.is_custom,
        auto_fill=record.auto_fill,
    )
    for seated in record.participants:
        participant = pool.get(seated.participant_id)
        table.add(participant if participant is not None else Participant.from_record(seated))
    return table
