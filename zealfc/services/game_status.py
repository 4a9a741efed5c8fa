from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from zealfc.core.errors import Forbidden, Internal, InvalidArgument
from zealfc.models import Admin, Game
from zealfc.services.action_log import log_action
from zealfc.services.games import find_admin_by_sub, get_game_or_404, touch_game
from zealfc.services.locks import workflow_locks
from zealfc.services.persistence import commit_workflow, write_game_side
from zealfc.services.roster import roster_entries, team_slots
from zealfc.services.stats_aggregation import (
    COUNTED_ATTENDANCE,
    OUTCOME_DRAW,
    OUTCOME_TEAM1,
    OUTCOME_TEAM2,
    STAT_FIELDS,
    AggregationSummary,
    aggregate_game_stats,
)

logger = logging.getLogger(__name__)

UPCOMING = "upcoming"
IN_PROGRESS = "in progress"
FINISHED = "finished"
GAME_STATUSES = (UPCOMING, IN_PROGRESS, FINISHED)
STATUS_ALIASES = {"in_progress": IN_PROGRESS}
REPORTED_ATTENDANCE = {"present", "late", "absent"}


@dataclass
class PlayerStatDelta:
    email: str
    goals: Optional[int] = None
    assists: Optional[int] = None
    yellow_cards: Optional[int] = None
    red_cards: Optional[int] = None
    attendance: Optional[str] = None


@dataclass
class StatusUpdateResult:
    game: Game
    status: str
    team_goals: Tuple[int, int]
    outcome: str
    unmatched: List[str] = field(default_factory=list)
    aggregation: Optional[AggregationSummary] = None


def normalize_status(raw: str | None) -> str:
    value = (raw or "").strip().lower()
    value = STATUS_ALIASES.get(value, value)
    if value not in GAME_STATUSES:
        raise InvalidArgument("invalid_status", "Invalid status value.")
    return value


def authorize_status_update(db: Session, game: Game, caller_sub: str) -> Optional[Admin]:
    """Admins may update any game; otherwise the caller must be the game's host."""
    admin = find_admin_by_sub(db, caller_sub)
    if admin is not None:
        return admin
    if game.host_identity_sub and game.host_identity_sub == caller_sub:
        return None
    raise Forbidden(
        "not_game_host_or_admin",
        "Forbidden: You are not authorized to perform this action.",
    )


def _validate_deltas(deltas: Sequence[PlayerStatDelta]) -> None:
    for delta in deltas:
        if not (delta.email or "").strip():
            raise InvalidArgument("stat_email_required", "Each stats entry needs an email.")
        if delta.attendance is not None and delta.attendance not in REPORTED_ATTENDANCE:
            raise InvalidArgument("invalid_attendance", "Attendance must be present, late or absent.")


def merge_stat_deltas(game: Game, deltas: Iterable[PlayerStatDelta]) -> List[str]:
    """Add each delta onto the matching roster entry. Returns emails with no roster slot."""
    by_email = {entry.email: entry for entry in roster_entries(game)}
    unmatched: List[str] = []
    for delta in deltas:
        entry = by_email.get(delta.email)
        if entry is None:
            unmatched.append(delta.email)
            continue
        for name in STAT_FIELDS:
            increment = getattr(delta, name)
            if increment is not None:
                setattr(entry, name, int(getattr(entry, name) or 0) + int(increment))
        entry.attendance = delta.attendance or "absent"
    return unmatched


def compute_team_goals(game: Game) -> Tuple[int, int]:
    totals = [0, 0]
    for team_index, team in enumerate(team_slots(game)):
        for entry in team:
            if entry is not None and entry.attendance in COUNTED_ATTENDANCE:
                totals[team_index] += int(entry.goals or 0)
    return totals[0], totals[1]


def outcome_for(team_goals: Tuple[int, int]) -> str:
    if team_goals[0] > team_goals[1]:
        return OUTCOME_TEAM1
    if team_goals[0] < team_goals[1]:
        return OUTCOME_TEAM2
    return OUTCOME_DRAW


def update_game_status(
    db: Session,
    *,
    game_id: int,
    caller_sub: str,
    status: str,
    stats: Sequence[PlayerStatDelta] = (),
) -> StatusUpdateResult:
    new_status = normalize_status(status)
    _validate_deltas(stats)

    with workflow_locks.hold(("game", game_id)):
        game = get_game_or_404(db, game_id)
        admin = authorize_status_update(db, game, caller_sub)

        unmatched = merge_stat_deltas(game, stats)
        if unmatched:
            logger.info("status_update_unmatched game_id=%s emails=%s", game.id, unmatched)
        goals = compute_team_goals(game)
        outcome = outcome_for(goals)

        game.status = new_status
        game.team1_goals, game.team2_goals = goals
        game.outcome = outcome
        touch_game(game)
        write_game_side(db, game_id=game.id, user_id=None, step="status_update")
        log_action(
            db,
            category="game",
            action="status_update",
            actor_admin_id=admin.id if admin else None,
            game_id=game.id,
            details={
                "status": new_status,
                "team_goals": list(goals),
                "outcome": outcome,
                "stats": len(stats),
            },
            commit=False,
        )
        commit_workflow(db, game_id=game.id, user_id=None, step="status_commit")

        summary = None
        if new_status == FINISHED:
            summary = _run_aggregation(db, game)

    logger.info(
        "status_update_ok game_id=%s status=%s goals=%s-%s outcome=%s",
        game.id,
        new_status,
        goals[0],
        goals[1],
        outcome,
    )
    return StatusUpdateResult(
        game=game,
        status=new_status,
        team_goals=goals,
        outcome=outcome,
        unmatched=unmatched,
        aggregation=summary,
    )


def _run_aggregation(db: Session, game: Game) -> AggregationSummary:
    try:
        summary = aggregate_game_stats(db, game)
        log_action(
            db,
            category="game",
            action="aggregate",
            game_id=game.id,
            details=summary.as_dict(),
            commit=False,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("aggregation_failed game_id=%s detail=%s", game.id, exc)
        raise Internal(
            "aggregation_failed",
            "Game status was saved but player statistics could not be updated.",
            game_id=game.id,
            step="aggregate",
        ) from exc
    commit_workflow(db, game_id=game.id, user_id=None, step="aggregate_commit")
    return summary
