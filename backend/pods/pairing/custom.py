"""
Custom table resolution.

Participants may be curated into custom groups by the host or by each
other. Before automatic seating, each group is classified:

- complete: four or more members, or auto-fill turned off. The group is
  emitted as a final table exactly as curated.
- open: fewer than four members with auto-fill on. The group keeps its
  members and gets a target size from the round plan; the remaining seats
  are filled automatically.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

import structlog

from pods.pairing import rng
from pods.pairing.models import Participant, Table
from pods.pairing.planner import FULL_TABLE_SIZE, SHORT_TABLE_SIZE, TablePlan
from pods.pairing.slots import FillSlot

logger = structlog.get_logger()


@dataclass
class CustomResolution:
    """Outcome of splitting the pool into custom and general participants."""

    complete: list[Table] = field(default_factory=list)
    open_tables: list[Table] = field(default_factory=list)
    available: list[Participant] = field(default_factory=list)

    @property
    def open_member_count(self) -> int:
        return sum(table.size for table in self.open_tables)


def group_custom_members(participants: Iterable[Participant]) -> dict[str, list[Participant]]:
    """Members of each custom group, keyed by group id in first-seen order."""
    groups: dict[str, list[Participant]] = {}
    for participant in participants:
        if participant.in_custom_group:
            groups.setdefault(participant.custom_group_id, []).append(participant)
    return groups


def resolve_custom_tables(
    participants: Sequence[Participant],
    *,
    round_number: int,
    allow_custom_groups: bool,
) -> CustomResolution:
    """Split participants into complete custom tables, open custom tables and the general pool.

    With custom groups disabled every participant lands in the general pool,
    whatever group id they carry. A group left with a single member is
    dissolved first, so that member is seated from the general pool.
    """
    if not allow_custom_groups:
        return CustomResolution(available=list(participants))

    dissolved = dissolve_singleton_groups(participants)
    if dissolved:
        logger.info("dissolved single-member custom groups", participant_ids=[p.participant_id for p in dissolved])

    resolution = CustomResolution()
    grouped: set[str] = set()
    for members in group_custom_members(participants).values():
        # A group's auto-fill flag is taken from its first member.
        auto_fill = members[0].auto_fill
        complete = len(members) >= FULL_TABLE_SIZE or not auto_fill
        table = Table(round_number=round_number, is_custom=True, auto_fill=not complete)
        for member in members:
            table.add(member)
            grouped.add(member.participant_id)
        if complete:
            resolution.complete.append(table)
        else:
            resolution.open_tables.append(table)

    resolution.available = [p for p in participants if p.participant_id not in grouped]
    return resolution


def assign_open_targets(
    open_tables: Sequence[Table],
    plan: TablePlan,
) -> tuple[list[FillSlot], TablePlan, list[Participant]]:
    """Give every open custom table a target size drawn from the plan.

    When both sizes remain the target is a coin flip between 4 and 3.
    Open tables left over once the plan is exhausted are released: their
    members join the general pool for this round only.

    Returns the custom slots, the plan still to be created as fresh tables,
    and the released participants.
    """
    fours, threes = plan.fours, plan.threes
    slots: list[FillSlot] = []
    released: list[Participant] = []

    for table in open_tables:
        if fours > 0 and threes > 0:
            target = FULL_TABLE_SIZE if rng.coin_flip() else SHORT_TABLE_SIZE
        elif fours > 0:
            target = FULL_TABLE_SIZE
        elif threes > 0:
            target = SHORT_TABLE_SIZE
        else:
            logger.warning("no table left for open custom group, releasing members", members=table.participant_ids)
            released.extend(table.participants)
            continue

        if target == FULL_TABLE_SIZE:
            fours -= 1
        else:
            threes -= 1
        slots.append(FillSlot(target=target, table=table))

    return slots, TablePlan(fours=fours, threes=threes), released


def dissolve_singleton_groups(participants: Iterable[Participant]) -> list[Participant]:
    """Clear the group of any participant left alone in a custom group.

    Returns the participants whose group was dissolved.
    """
    dissolved: list[Participant] = []
    for members in group_custom_members(participants).values():
        if len(members) == 1:
            member = members[0]
            member.custom_group_id = ""
            member.auto_fill = False
            dissolved.append(member)
    return dissolved
