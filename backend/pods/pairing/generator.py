"""
Round generation pipeline.

Builds the tables for one round from the live pool and the archive:

1. carve out custom tables (complete ones are final, open ones get a target)
2. plan 4-seat and 3-seat tables for everyone not in a complete custom table
3. seat last-round winners together when winner priority applies
4. fill every remaining seat with the weighted minimal-repeat selector
5. send anyone left over to the bye table
6. number the tables and shuffle seat order
"""

from collections.abc import Sequence

import structlog

from pods.pairing import rng
from pods.pairing.custom import assign_open_targets, resolve_custom_tables
from pods.pairing.exceptions import PairingInvariantError
from pods.pairing.history import build_pairing_history
from pods.pairing.models import Participant, Table
from pods.pairing.planner import FULL_TABLE_SIZE, SHORT_TABLE_SIZE, plan_with_byes
from pods.pairing.selector import select_participants
from pods.pairing.settings import PodSettings
from pods.pairing.slots import FillSlot
from pods.pairing.types import BYE_TABLE_NUMBER, ArchivedRound
from pods.pairing.winners import collect_winners, last_round_winner_ids, seat_winners

logger = structlog.get_logger()


def generate_tables(
    participants: Sequence[Participant],
    archive: Sequence[ArchivedRound],
    settings: PodSettings,
    *,
    round_number: int,
    prioritize_winners: bool,
) -> list[Table]:
    """Seat every participant for a new round.

    prioritize_winners is the effective flag for this call: callers turn
    it off for the first round regardless of the session setting.

    Raises PairingInvariantError if a filled table misses its planned size.
    """
    resolution = resolve_custom_tables(
        participants,
        round_number=round_number,
        allow_custom_groups=settings.allow_custom_groups,
    )
    plan = plan_with_byes(
        len(resolution.available) + resolution.open_member_count,
        allow_three_seat_tables=settings.allow_three_seat_tables,
    )
    slots, fresh, released = assign_open_targets(resolution.open_tables, plan)
    slots.extend(FillSlot(target=FULL_TABLE_SIZE, table=Table(round_number=round_number)) for _ in range(fresh.fours))
    slots.extend(FillSlot(target=SHORT_TABLE_SIZE, table=Table(round_number=round_number)) for _ in range(fresh.threes))
    rng.shuffle(slots)

    history = build_pairing_history(archive, extra_three_seat_penalty=settings.extra_three_seat_penalty)
    pool = [*resolution.available, *released]

    winners = collect_winners(archive, pool) if prioritize_winners else []
    winner_ids = {w.participant_id for w in winners}
    non_winners = [p for p in pool if p.participant_id not in winner_ids]
    leftover_winners = seat_winners(
        winners,
        slots,
        non_winners,
        history,
        score_mode=settings.pairing_score,
        fairness_bonus=settings.fairness_bonus,
    )

    remaining = rng.shuffled([*leftover_winners, *non_winners])
    for slot in slots:
        if slot.free <= 0:
            continue
        picked = select_participants(
            remaining,
            slot.table.participants,
            slot.free,
            history,
            score_mode=settings.pairing_score,
            fairness_bonus=settings.fairness_bonus,
        )
        for participant in picked:
            remaining.remove(participant)
        slot.seat(picked)

    for index, slot in enumerate(slots, start=1):
        if slot.table.size != slot.target:
            raise PairingInvariantError(index, slot.table.size, slot.target, len(remaining))

    tables = number_tables(
        [*resolution.complete, *(slot.table for slot in slots)],
        last_round_winner_ids(archive),
    )
    if remaining:
        bye = Table(round_number=round_number, table_number=BYE_TABLE_NUMBER)
        for participant in remaining:
            bye.add(participant)
        shuffle_seat_order(bye)
        tables.append(bye)

    logger.debug(
        "tables generated",
        round_number=round_number,
        fours=plan.fours,
        threes=plan.threes,
        custom=len(resolution.complete) + len(resolution.open_tables),
        winners=len(winners),
        byes=len(remaining),
    )
    return tables


def shuffle_seat_order(table: Table) -> None:
    """Assign each participant a distinct random seat order from 1 to table size."""
    orders = rng.shuffled(range(1, table.size + 1))
    for participant, order in zip(table.participants, orders, strict=True):
        participant.seat_order = order


def number_tables(tables: Sequence[Table], winner_ids: set[str]) -> list[Table]:
    """Order and number tables: winner tables, then regular, then custom.

    Each group is shuffled and numbering starts at 1. A table counts as a
    winner table when it seats any winner of the previous round. Bye
    tables are left out; callers append them after numbering.
    """
    winner_tables: list[Table] = []
    regular: list[Table] = []
    custom: list[Table] = []
    for table in tables:
        if table.is_bye:
            continue
        if any(pid in winner_ids for pid in table.participant_ids):
            winner_tables.append(table)
        elif table.is_custom:
            custom.append(table)
        else:
            regular.append(table)

    ordered = [*rng.shuffled(winner_tables), *rng.shuffled(regular), *rng.shuffled(custom)]
    for number, table in enumerate(ordered, start=1):
        table.table_number = number
        shuffle_seat_order(table)
    return ordered
