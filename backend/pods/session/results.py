"""
Command results returned by the round controller and session manager.

Business failures (unknown participant, result already recorded, ...) are
returned as a CommandResult carrying a SessionErrorCode and a stable
message. They are never raised.
"""

from __future__ import annotations

from dataclasses import dataclass

from pods.pairing.types import ParticipantRecord, TableRecord
from pods.session.enums import SessionErrorCode

ERROR_MESSAGES: dict[SessionErrorCode, str] = {
    SessionErrorCode.INVALID_REQUEST: "Invalid request",
    SessionErrorCode.SESSION_NOT_FOUND: "Session does not exist",
    SessionErrorCode.SESSION_EXPIRED: "Session has expired",
    SessionErrorCode.SESSION_ENDED: "Game has ended",
    SessionErrorCode.JOIN_CLOSED: "Game has started and is closed to new participants",
    SessionErrorCode.ALREADY_JOINED: "A participant with this id is already in the game",
    SessionErrorCode.NOT_HOST: "Only the host can do this",
    SessionErrorCode.ALREADY_STARTED: "Settings cannot change after the game has started",
    SessionErrorCode.NOT_STARTED: "No tables have been generated",
    SessionErrorCode.INSUFFICIENT_PARTICIPANTS: "At least 6 participants are required",
    SessionErrorCode.MAX_ROUNDS_REACHED: "Maximum number of rounds reached",
    SessionErrorCode.TABLE_NOT_FOUND: "Table not found in the current round",
    SessionErrorCode.PARTICIPANT_NOT_FOUND: "Participant not found",
    SessionErrorCode.RESULT_ALREADY_RECORDED: "Table already has a result",
    SessionErrorCode.ROUND_IN_PROGRESS: "Not allowed after the round has started",
    SessionErrorCode.CUSTOM_GROUPS_DISABLED: "Custom groups are not allowed for this session",
    SessionErrorCode.CUSTOM_GROUP_NOT_FOUND: "Custom group not found",
}


@dataclass(frozen=True)
class CommandResult:
    """Outcome of one session command.

    Optional fields are filled by the commands that produce them.
    """

    error: SessionErrorCode | None = None
    message: str = ""
    round_number: int | None = None
    tables: tuple[TableRecord, ...] = ()
    table_number: int | None = None
    winner_id: str | None = None
    removed: ParticipantRecord | None = None
    group_id: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def fail(cls, error: SessionErrorCode, message: str = "") -> CommandResult:
        return cls(error=error, message=message or ERROR_MESSAGES[error])
