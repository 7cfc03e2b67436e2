"""
Table size planning.

Splits a participant count into 4-seat and 3-seat tables. With 3-seat tables
allowed every count except 1, 2 and 5 partitions exactly; with them disabled
only full tables of 4 are planned and the remainder sits out at the bye table.
"""

from dataclasses import dataclass

FULL_TABLE_SIZE = 4
SHORT_TABLE_SIZE = 3


@dataclass(frozen=True)
class TablePlan:
    """Number of 4-seat and 3-seat tables for one round."""

    fours: int
    threes: int

    @property
    def table_count(self) -> int:
        return self.fours + self.threes

    @property
    def seats(self) -> int:
        return self.fours * FULL_TABLE_SIZE + self.threes * SHORT_TABLE_SIZE


def plan_tables(participant_count: int, *, allow_three_seat_tables: bool) -> TablePlan:
    """Compute how many 4-seat and 3-seat tables seat the given count.

    Raises ValueError for negative counts and for counts that cannot be
    partitioned into 3s and 4s (1, 2 and 5 when 3-seat tables are allowed).
    """
    if participant_count < 0:
        raise ValueError(f"participant_count must be non-negative, got {participant_count}")

    fours, remainder = divmod(participant_count, FULL_TABLE_SIZE)
    if not allow_three_seat_tables:
        return TablePlan(fours=fours, threes=0)

    threes = 0
    if remainder == 1:
        fours, threes = fours - 2, 3
    elif remainder == 2:  # noqa: PLR2004
        fours, threes = fours - 1, 2
    elif remainder == 3:  # noqa: PLR2004
        threes = 1

    if fours < 0:
        raise ValueError(f"{participant_count} participants cannot be split into tables of 3 and 4")
    return TablePlan(fours=fours, threes=threes)


def plan_with_byes(participant_count: int, *, allow_three_seat_tables: bool) -> TablePlan:
    """Return the largest feasible plan seating at most participant_count.

    Participants beyond plan.seats are expected to go to the bye table.
    """
    for count in range(participant_count, -1, -1):
        try:
            return plan_tables(count, allow_three_seat_tables=allow_three_seat_tables)
        except ValueError:
            continue
    return TablePlan(fours=0, threes=0)
