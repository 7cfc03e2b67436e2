"""
Pairing history derived from archived rounds.

The history is rebuilt from scratch on every generation so it always
reflects the full archive: how often each pair of participants shared a
table, and how often each participant sat at an undersized (3-seat) table.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from itertools import combinations

from pods.pairing.planner import SHORT_TABLE_SIZE
from pods.pairing.types import ArchivedRound

# Extra undersized-table weight added per placement when the penalty setting is on.
EXTRA_THREE_SEAT_PENALTY = 3

type PairKey = tuple[str, str]


def pair_key(first_id: str, second_id: str) -> PairKey:
    """Order-independent key for a pair of participant ids."""
    return (first_id, second_id) if first_id < second_id else (second_id, first_id)


@dataclass(frozen=True)
class PairingHistory:
    """Pair co-occurrence counts and undersized-table counts."""

    pair_counts: dict[PairKey, int] = field(default_factory=dict)
    undersized_counts: dict[str, int] = field(default_factory=dict)
    last_round_undersized: frozenset[str] = frozenset()

    def pairings(self, first_id: str, second_id: str) -> int:
        if first_id == second_id:
            return 0
        return self.pair_counts.get(pair_key(first_id, second_id), 0)

    def undersized(self, participant_id: str) -> int:
        return self.undersized_counts.get(participant_id, 0)


def build_pairing_history(
    archive: Sequence[ArchivedRound],
    *,
    extra_three_seat_penalty: bool = False,
) -> PairingHistory:
    """Count shared tables per pair and 3-seat placements per participant.

    Bye tables are not real games and are skipped.
    """
    pair_counts: dict[PairKey, int] = {}
    undersized_counts: dict[str, int] = {}
    increment = 1 + (EXTRA_THREE_SEAT_PENALTY if extra_three_seat_penalty else 0)

    for archived_round in archive:
        for table in archived_round:
            if table.is_bye:
                continue
            ids = sorted(set(table.participant_ids))
            for first_id, second_id in combinations(ids, 2):
                key = (first_id, second_id)
                pair_counts[key] = pair_counts.get(key, 0) + 1
            if len(ids) == SHORT_TABLE_SIZE:
                for participant_id in ids:
                    undersized_counts[participant_id] = undersized_counts.get(participant_id, 0) + increment

    last_round_undersized: frozenset[str] = frozenset()
    if archive:
        last_round_undersized = frozenset(
            participant_id
            for table in archive[-1]
            if not table.is_bye and len(table.participants) == SHORT_TABLE_SIZE
            for participant_id in table.participant_ids
        )

    return PairingHistory(
        pair_counts=pair_counts,
        undersized_counts=undersized_counts,
        last_round_undersized=last_round_undersized,
    )
