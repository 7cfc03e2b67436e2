from enum import StrEnum


class SessionErrorCode(StrEnum):
    INVALID_REQUEST = "invalid_request"
    SESSION_NOT_FOUND = "session_not_found"
    SESSION_EXPIRED = "session_expired"
    SESSION_ENDED = "session_ended"
    JOIN_CLOSED = "join_closed"
    ALREADY_JOINED = "already_joined"
    NOT_HOST = "not_host"
    ALREADY_STARTED = "already_started"
    NOT_STARTED = "not_started"
    INSUFFICIENT_PARTICIPANTS = "insufficient_participants"
    MAX_ROUNDS_REACHED = "max_rounds_reached"
    TABLE_NOT_FOUND = "table_not_found"
    PARTICIPANT_NOT_FOUND = "participant_not_found"
    RESULT_ALREADY_RECORDED = "result_already_recorded"
    ROUND_IN_PROGRESS = "round_in_progress"
    CUSTOM_GROUPS_DISABLED = "custom_groups_disabled"
    CUSTOM_GROUP_NOT_FOUND = "custom_group_not_found"


class RoundCommand(StrEnum):
    GENERATE_FIRST = "generate_first"
    GENERATE = "generate"
    REGENERATE = "regenerate"
    START = "start"
    RESET = "reset"
    END_ROUND = "end_round"
    END_GAME = "end_game"


class Outcome(StrEnum):
    WIN = "win"
    DRAW = "draw"
    DROP = "drop"
    DATA = "data"  # statistics only, result untouched


class TableResult(StrEnum):
    WIN = "win"
    DRAW = "draw"
    NONE = "none"
