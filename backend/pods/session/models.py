from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from pods.pairing.models import Participant, Table
from pods.pairing.settings import PodSettings
from pods.pairing.types import ArchivedRound


@dataclass
class PodSession:
    """One pod: its participant pool, current tables and archived rounds.

    Lifecycle:
    - Created by SessionRegistry.create_session with a unique room code
    - Participants join until the game starts (or later, if allowed)
    - Each generated round replaces tables; superseded tables are archived
    - Ends on end_game, on expiry, or when invalidated by the host
    """

    code: str
    host_id: str
    created_at: datetime
    expires_at: datetime
    settings: PodSettings = field(default_factory=PodSettings)
    event_name: str = ""
    current_round: int = 0
    participants: dict[str, Participant] = field(default_factory=dict)  # active pool, dropped participants removed
    tables: list[Table] | None = None
    archive: list[ArchivedRound] = field(default_factory=list)
    started: bool = False
    ended: bool = False
    archived: bool = False
    revision: int = 0  # bumped on every committed change, orders persisted snapshots

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at <= (now or datetime.now(UTC))

    @property
    def round_in_progress(self) -> bool:
        """True once any table of the current round has started."""
        return any(table.round_started for table in self.tables or ())

    def seated_table(self, participant_id: str) -> Table | None:
        """The current-round game table seating the participant. Bye tables are not game tables."""
        return next(
            (t for t in self.tables or () if not t.is_bye and t.contains(participant_id)),
            None,
        )

    def table_by_number(self, table_number: int, round_number: int) -> Table | None:
        """A table of the current round. Archived rounds are immutable and never returned."""
        if round_number != self.current_round:
            return None
        return next((t for t in self.tables or () if t.table_number == table_number), None)

    def custom_group_members(self, group_id: str) -> list[Participant]:
        return [p for p in self.participants.values() if p.custom_group_id == group_id]
