"""
Winner-priority seating.

Winners of the most recent archived round are re-seated together: every
four winners fill an empty 4-seat table, and a remainder of one to three
winners borrows non-winners through the selector to complete one more
table of four. Winners that cannot be seated this way go back to the
general pool rather than forming an undersized winner table.
"""

from collections.abc import Sequence

import structlog

from pods.pairing import rng
from pods.pairing.history import PairingHistory
from pods.pairing.models import Participant
from pods.pairing.planner import FULL_TABLE_SIZE
from pods.pairing.selector import select_participants
from pods.pairing.settings import FairnessBonus, PairingScoreMode
from pods.pairing.slots import FillSlot
from pods.pairing.types import ArchivedRound

logger = structlog.get_logger()


def last_round_winner_ids(archive: Sequence[ArchivedRound]) -> set[str]:
    if not archive:
        return set()
    return {table.winner_id for table in archive[-1] if table.winner_id}


def collect_winners(archive: Sequence[ArchivedRound], pool: Sequence[Participant]) -> list[Participant]:
    """Last-round winners that are still in the given pool."""
    winner_ids = last_round_winner_ids(archive)
    return [p for p in pool if p.participant_id in winner_ids]


def _remainder_slot(slots: Sequence[FillSlot], remainder: int) -> FillSlot | None:
    """Slot for a partial winner table: an open custom table first, then an empty 4-seat table."""
    for slot in slots:
        if slot.is_custom and slot.target == FULL_TABLE_SIZE and not slot.winners and slot.free >= remainder:
            return slot
    for slot in slots:
        if not slot.is_custom and slot.target == FULL_TABLE_SIZE and slot.is_empty:
            return slot
    return None


def seat_winners(
    winners: Sequence[Participant],
    slots: Sequence[FillSlot],
    non_winners: list[Participant],
    history: PairingHistory,
    *,
    score_mode: PairingScoreMode = PairingScoreMode.FULL_POOL,
    fairness_bonus: FairnessBonus = FairnessBonus.PROGRESSIVE,
) -> list[Participant]:
    """Seat winners into the slots and return the winners left unseated.

    Non-winners borrowed to complete a partial winner table are removed
    from non_winners.
    """
    shuffled = rng.shuffled(winners)
    leftover: list[Participant] = []

    full_tables, remainder_count = divmod(len(shuffled), FULL_TABLE_SIZE)
    for index in range(full_tables):
        chunk = shuffled[index * FULL_TABLE_SIZE : (index + 1) * FULL_TABLE_SIZE]
        slot = next(
            (s for s in slots if not s.is_custom and s.target == FULL_TABLE_SIZE and s.is_empty),
            None,
        )
        if slot is None:
            leftover.extend(chunk)
            continue
        slot.seat(rng.shuffled(chunk))
        slot.winners = True

    if remainder_count == 0:
        return leftover

    remainder = shuffled[full_tables * FULL_TABLE_SIZE :]
    slot = _remainder_slot(slots, remainder_count)
    if slot is None:
        leftover.extend(remainder)
        return leftover

    needed = slot.free - remainder_count
    if needed > len(non_winners):
        logger.debug("not enough non-winners to complete a winner table", winners=remainder_count, needed=needed)
        leftover.extend(remainder)
        return leftover

    borrowed = select_participants(
        non_winners,
        [*slot.table.participants, *remainder],
        needed,
        history,
        score_mode=score_mode,
        fairness_bonus=fairness_bonus,
    )
    for participant in borrowed:
        non_winners.remove(participant)
    slot.seat(rng.shuffled([*remainder, *borrowed]))
    slot.winners = True
    return leftover
