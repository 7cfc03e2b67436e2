"""Builders for pod engine tests."""

from datetime import UTC, datetime, timedelta

from pods.pairing.models import Participant, Table
from pods.pairing.settings import PodSettings
from pods.pairing.types import ArchivedRound, ParticipantRecord, TableRecord
from pods.session.models import PodSession

JOINED_AT = datetime(2026, 1, 1, 12, 0, tzinfo=UTC)


def make_participants(count: int, prefix: str = "p") -> list[Participant]:
    return [Participant(participant_id=f"{prefix}{i}", name=f"Player {i}") for i in range(1, count + 1)]


def make_session(count: int = 0, settings: PodSettings | None = None, code: str = "ABC234") -> PodSession:
    now = datetime.now(UTC)
    session = PodSession(
        code=code,
        host_id="host",
        created_at=now,
        expires_at=now + timedelta(days=1),
        settings=settings or PodSettings(),
    )
    for participant in make_participants(count):
        session.participants[participant.participant_id] = participant
    return session


def table_record(
    *participant_ids: str,
    table_number: int = 1,
    round_number: int = 1,
    winner_id: str | None = None,
    is_draw: bool = False,
) -> TableRecord:
    return TableRecord(
        table_number=table_number,
        round_number=round_number,
        participants=tuple(
            ParticipantRecord(participant_id=pid, name=pid, joined_at=JOINED_AT) for pid in participant_ids
        ),
        winner_id=winner_id,
        is_draw=is_draw,
    )


def archived_round(*tables: TableRecord) -> ArchivedRound:
    return tuple(tables)


def seated_ids(tables: list[Table]) -> list[str]:
    return [pid for table in tables for pid in table.participant_ids]
