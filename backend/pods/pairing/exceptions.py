"""Exceptions raised by the pairing engine."""


class PairingError(Exception):
    """Base class for table generation failures."""


class PairingInvariantError(PairingError):
    """A generated table does not match its planned size.

    This signals a planner or selector defect, not a business condition,
    and is never converted into a command result.
    """

    def __init__(self, table_number: int, size: int, target: int, remaining: int) -> None:
        self.table_number = table_number
        self.size = size
        self.target = target
        self.remaining = remaining
        super().__init__(
            f"Table {table_number} has {size} participants but expected {target} ({remaining} left unseated)",
        )
