"""Tables under construction, each with a target seat count."""

from collections.abc import Iterable
from dataclasses import dataclass

from pods.pairing.models import Participant, Table


@dataclass
class FillSlot:
    """A table that generation fills up to target seats."""

    target: int
    table: Table
    winners: bool = False

    @property
    def is_custom(self) -> bool:
        return self.table.is_custom

    @property
    def is_empty(self) -> bool:
        return self.table.size == 0

    @property
    def free(self) -> int:
        return self.target - self.table.size

    def seat(self, participants: Iterable[Participant]) -> None:
        for participant in participants:
            self.table.add(participant)
