"""
Round lifecycle state transitions.

RoundController applies commands to a PodSession and returns a
CommandResult. It performs no locking, I/O or event delivery: the session
manager holds the session lock around every call and handles persistence
and listeners afterwards. A rejected command leaves the session untouched.

Session states: not started -> round active -> ... -> ended.
Table states: forming -> in progress (start) -> completed (result);
reset returns every table to forming.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

import structlog

from pods.pairing.custom import dissolve_singleton_groups
from pods.pairing.generator import generate_tables
from pods.pairing.models import Participant, Table
from pods.pairing.settings import PodSettings
from pods.pairing.types import ArchivedRound
from pods.session.enums import Outcome, RoundCommand, SessionErrorCode, TableResult
from pods.session.models import PodSession
from pods.session.results import CommandResult

logger = structlog.get_logger()

MIN_PARTICIPANTS = 6
MIN_GROUP_SIZE = 2

_GENERATE_COMMANDS = frozenset({RoundCommand.GENERATE_FIRST, RoundCommand.GENERATE, RoundCommand.REGENERATE})


def _now() -> datetime:
    return datetime.now(UTC)


def award_points(session: PodSession, tables: Sequence[Table]) -> None:
    """Add round points to everyone seated at decided, drawn and bye tables."""
    schema = session.settings.points
    if not schema.use_points:
        return
    for table in tables:
        if table.is_bye:
            for participant in table.participants:
                participant.points += schema.bye
        elif table.is_draw:
            for participant in table.participants:
                participant.points += schema.draw
        elif table.winner_id:
            for participant in table.participants:
                participant.points += schema.win if participant.participant_id == table.winner_id else schema.loss


def archive_round(session: PodSession, now: datetime | None = None) -> ArchivedRound | None:
    """Freeze the current tables into the archive and clear them.

    Tables without a completion time are stamped first. Returns the
    archived round, or None when there were no tables.
    """
    if not session.tables:
        session.tables = None
        return None
    stamp = now or _now()
    for table in session.tables:
        if table.completed_at is None:
            table.completed_at = stamp
    award_points(session, session.tables)
    archived = tuple(table.to_record() for table in session.tables)
    session.archive.append(archived)
    session.tables = None
    logger.info("round archived", code=session.code, round_number=session.current_round, tables=len(archived))
    return archived


def _tables_result(session: PodSession) -> CommandResult:
    return CommandResult(
        round_number=session.current_round,
        tables=tuple(t.to_record() for t in session.tables or ()),
    )


class RoundController:
    """Applies session commands. Callers must hold the session lock."""

    # --- Joining and settings ---

    def join(self, session: PodSession, participant_id: str, name: str = "", character: str = "") -> CommandResult:
        if not participant_id.strip():
            return CommandResult.fail(SessionErrorCode.INVALID_REQUEST)
        if session.is_expired():
            return CommandResult.fail(SessionErrorCode.SESSION_EXPIRED)
        if session.ended:
            return CommandResult.fail(SessionErrorCode.SESSION_ENDED)
        if session.started and not session.settings.allow_join_after_start:
            return CommandResult.fail(SessionErrorCode.JOIN_CLOSED)
        if participant_id in session.participants:
            return CommandResult.fail(SessionErrorCode.ALREADY_JOINED)

        participant = Participant(participant_id=participant_id, name=name or participant_id, character=character)
        session.participants[participant_id] = participant
        logger.info("participant joined", code=session.code, participant_id=participant_id)
        return CommandResult(round_number=session.current_round)

    def update_settings(
        self,
        session: PodSession,
        requester_id: str,
        *,
        settings: PodSettings | None = None,
        event_name: str | None = None,
    ) -> CommandResult:
        """Host-only change of settings and event name before the game starts."""
        if requester_id != session.host_id:
            return CommandResult.fail(SessionErrorCode.NOT_HOST)
        if session.ended:
            return CommandResult.fail(SessionErrorCode.SESSION_ENDED)
        if session.started:
            return CommandResult.fail(SessionErrorCode.ALREADY_STARTED)
        if settings is not None:
            session.settings = settings
        if event_name and event_name.strip():
            session.event_name = event_name.strip()
        return CommandResult()

    # --- Round commands ---

    def handle_round(self, session: PodSession, command: RoundCommand) -> CommandResult:
        if session.ended:
            return CommandResult.fail(SessionErrorCode.SESSION_ENDED)
        if command in _GENERATE_COMMANDS:
            return self._generate(session, command)
        if command in (RoundCommand.START, RoundCommand.RESET):
            return self._start_or_reset(session, command)
        if command == RoundCommand.END_ROUND:
            archive_round(session)
            return CommandResult(round_number=session.current_round)
        if command == RoundCommand.END_GAME:
            archive_round(session)
            session.ended = True
            logger.info("game ended", code=session.code, rounds=len(session.archive))
            return CommandResult(round_number=session.current_round)
        return CommandResult.fail(SessionErrorCode.INVALID_REQUEST)

    def _generate(self, session: PodSession, command: RoundCommand) -> CommandResult:
        participants = list(session.participants.values())
        if len(participants) < MIN_PARTICIPANTS:
            return CommandResult.fail(SessionErrorCode.INSUFFICIENT_PARTICIPANTS)
        if command == RoundCommand.REGENERATE and not session.tables:
            return CommandResult.fail(SessionErrorCode.NOT_STARTED)
        # generate_first with no live tables (new session, or after end_round)
        # opens the next round instead of rebuilding an archived one.
        advances = command == RoundCommand.GENERATE or (
            command == RoundCommand.GENERATE_FIRST and session.tables is None
        )
        max_rounds = session.settings.max_rounds
        if advances and max_rounds and session.current_round >= max_rounds:
            return CommandResult.fail(SessionErrorCode.MAX_ROUNDS_REACHED)

        if command == RoundCommand.GENERATE:
            archive_round(session)
        if advances:
            session.current_round += 1

        session.tables = generate_tables(
            participants,
            session.archive,
            session.settings,
            round_number=session.current_round,
            prioritize_winners=session.settings.prioritize_winners and session.current_round > 1,
        )
        session.started = True
        logger.info(
            "round generated",
            code=session.code,
            command=command,
            round_number=session.current_round,
            tables=len(session.tables),
        )
        return _tables_result(session)

    def _start_or_reset(self, session: PodSession, command: RoundCommand) -> CommandResult:
        if not session.tables:
            return CommandResult.fail(SessionErrorCode.NOT_STARTED)
        now = _now()
        for table in session.tables:
            if command == RoundCommand.START:
                table.round_started = True
                if table.started_at is None:
                    table.started_at = now
            else:
                table.round_started = False
                table.started_at = None
                table.completed_at = None
                table.clear_result()
        return _tables_result(session)

    # --- Results ---

    def report_outcome(
        self,
        session: PodSession,
        participant_id: str,
        outcome: Outcome,
        *,
        character: str = "",
        statistics: Mapping[str, Any] | None = None,
    ) -> CommandResult:
        """Record a participant's own outcome for the current round.

        Drop-out is only possible before any table starts. Win and draw
        require the participant to be seated at a current game table that
        has no result yet. Data-only reports merge statistics regardless of
        the table result.
        """
        if not participant_id.strip():
            return CommandResult.fail(SessionErrorCode.INVALID_REQUEST)
        if session.ended:
            return CommandResult.fail(SessionErrorCode.SESSION_ENDED)
        if outcome == Outcome.DROP:
            return self._drop(session, participant_id)

        if session.tables is None:
            return CommandResult.fail(SessionErrorCode.NOT_STARTED)
        table = session.seated_table(participant_id)
        if table is None:
            return CommandResult.fail(SessionErrorCode.PARTICIPANT_NOT_FOUND)
        if outcome != Outcome.DATA and table.has_result:
            return CommandResult.fail(SessionErrorCode.RESULT_ALREADY_RECORDED)
        pooled = session.participants.get(participant_id)
        if outcome == Outcome.WIN and pooled is None:
            return CommandResult.fail(SessionErrorCode.PARTICIPANT_NOT_FOUND)

        if character and pooled is not None:
            pooled.character = character
        if statistics:
            table.statistics.update(statistics)

        if outcome == Outcome.WIN:
            table.set_winner(participant_id)
            table.completed_at = _now()
            logger.info("table won", code=session.code, table_number=table.table_number, winner_id=participant_id)
            return CommandResult(table_number=table.table_number, winner_id=participant_id)
        if outcome == Outcome.DRAW:
            table.set_draw()
            table.completed_at = _now()
            logger.info("table drawn", code=session.code, table_number=table.table_number)
        return CommandResult(table_number=table.table_number)

    def _drop(self, session: PodSession, participant_id: str) -> CommandResult:
        if session.round_in_progress:
            return CommandResult.fail(SessionErrorCode.ROUND_IN_PROGRESS)
        participant = session.participants.pop(participant_id, None)
        if participant is None:
            return CommandResult.fail(SessionErrorCode.PARTICIPANT_NOT_FOUND)
        participant.dropped = True
        dissolve_singleton_groups(session.participants.values())
        logger.info("participant dropped", code=session.code, participant_id=participant_id)
        return CommandResult(removed=participant.to_record())

    def set_table_result(
        self,
        session: PodSession,
        table_number: int,
        round_number: int,
        result: TableResult,
        participant_id: str = "",
    ) -> CommandResult:
        """Host override of a current-round table result."""
        if session.ended:
            return CommandResult.fail(SessionErrorCode.SESSION_ENDED)
        if session.tables is None:
            return CommandResult.fail(SessionErrorCode.NOT_STARTED)
        table = session.table_by_number(table_number, round_number)
        if table is None or table.is_bye:
            return CommandResult.fail(SessionErrorCode.TABLE_NOT_FOUND)

        if result == TableResult.WIN:
            if not table.contains(participant_id):
                return CommandResult.fail(SessionErrorCode.PARTICIPANT_NOT_FOUND)
            table.set_winner(participant_id)
            table.completed_at = _now()
            return CommandResult(table_number=table_number, winner_id=participant_id)
        if result == TableResult.DRAW:
            table.set_draw()
            table.completed_at = _now()
        else:
            table.clear_result()
            table.completed_at = None
        return CommandResult(table_number=table_number)

    # --- Seating adjustments ---

    def move_participant(
        self,
        session: PodSession,
        from_table: int,
        to_table: int,
        round_number: int,
        participant_id: str,
    ) -> CommandResult:
        if session.ended:
            return CommandResult.fail(SessionErrorCode.SESSION_ENDED)
        if session.tables is None:
            return CommandResult.fail(SessionErrorCode.NOT_STARTED)
        if from_table == to_table:
            return CommandResult.fail(SessionErrorCode.INVALID_REQUEST)
        source = session.table_by_number(from_table, round_number)
        target = session.table_by_number(to_table, round_number)
        if source is None or target is None:
            return CommandResult.fail(SessionErrorCode.TABLE_NOT_FOUND)
        participant = source.remove(participant_id)
        if participant is None:
            return CommandResult.fail(SessionErrorCode.PARTICIPANT_NOT_FOUND)
        target.add(participant)
        logger.info(
            "participant moved",
            code=session.code,
            participant_id=participant_id,
            from_table=from_table,
            to_table=to_table,
        )
        return _tables_result(session)

    def create_custom_group(
        self,
        session: PodSession,
        participant_ids: Sequence[str],
        *,
        auto_fill: bool = True,
    ) -> CommandResult:
        if not session.settings.allow_custom_groups:
            return CommandResult.fail(SessionErrorCode.CUSTOM_GROUPS_DISABLED)
        unique_ids = list(dict.fromkeys(pid for pid in participant_ids if pid))
        if not MIN_GROUP_SIZE <= len(unique_ids) <= session.settings.max_table_size:
            return CommandResult.fail(SessionErrorCode.INVALID_REQUEST)
        if session.round_in_progress:
            return CommandResult.fail(SessionErrorCode.ROUND_IN_PROGRESS)
        members = [session.participants.get(pid) for pid in unique_ids]
        if any(member is None for member in members):
            return CommandResult.fail(SessionErrorCode.PARTICIPANT_NOT_FOUND)

        group_id = str(uuid.uuid4())
        for member in members:
            member.custom_group_id = group_id
            member.auto_fill = auto_fill
        dissolve_singleton_groups(session.participants.values())
        logger.info("custom group created", code=session.code, group_id=group_id, members=unique_ids)
        return CommandResult(group_id=group_id)

    def delete_custom_group(self, session: PodSession, group_id: str) -> CommandResult:
        if session.round_in_progress:
            return CommandResult.fail(SessionErrorCode.ROUND_IN_PROGRESS)
        members = session.custom_group_members(group_id) if group_id else []
        if not members:
            return CommandResult.fail(SessionErrorCode.CUSTOM_GROUP_NOT_FOUND)
        for member in members:
            member.custom_group_id = ""
            member.auto_fill = False
        logger.info("custom group deleted", code=session.code, group_id=group_id)
        return CommandResult(group_id=group_id)

    # --- Expiry ---

    def expire(self, session: PodSession) -> None:
        """Archive the current round and close an expired session."""
        archive_round(session)
        session.ended = True
        session.archived = True
        session.revision += 1
