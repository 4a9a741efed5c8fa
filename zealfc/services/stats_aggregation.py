"""Rolls a finished game's roster into each player's career totals.

Every history row in ``user_games`` remembers whether its numbers have been
added to the user's totals (``aggregated``). Re-running aggregation for the same
game first subtracts that earlier contribution and then applies the current
one, so a repeated ``finished`` update never counts a game twice.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.orm import Session

from zealfc.core.errors import InvalidArgument
from zealfc.models import Game, GamePlayer, User, UserGame
from zealfc.services.roster import roster_entries, team_slots

logger = logging.getLogger(__name__)

COUNTED_ATTENDANCE = {"present", "late"}
POINTS_BY_RESULT = {"win": 3, "draw": 1, "loss": 0}
COUNTER_BY_RESULT = {"win": "wins", "draw": "draws", "loss": "losses"}
STAT_FIELDS = ("goals", "assists", "yellow_cards", "red_cards")

OUTCOME_TEAM1 = "Team 1 wins"
OUTCOME_TEAM2 = "Team 2 wins"
OUTCOME_DRAW = "Draw"


@dataclass
class AggregationSummary:
    game_id: int
    credited: int = 0
    absences: int = 0
    replayed: int = 0
    skipped_missing_user: int = 0
    skipped_no_attendance: int = 0

    def as_dict(self) -> dict[str, int]:
        return {
            "game_id": self.game_id,
            "credited": self.credited,
            "absences": self.absences,
            "replayed": self.replayed,
            "skipped_missing_user": self.skipped_missing_user,
            "skipped_no_attendance": self.skipped_no_attendance,
        }


def team_results(outcome: str) -> Tuple[str, str]:
    if outcome == OUTCOME_TEAM1:
        return "win", "loss"
    if outcome == OUTCOME_TEAM2:
        return "loss", "win"
    return "draw", "draw"


def _bump(user: User, field: str, delta: int) -> None:
    setattr(user, field, int(getattr(user, field) or 0) + delta)


def find_history(user: User, game_id: int) -> Optional[UserGame]:
    for record in user.games:
        if record.game_id == game_id:
            return record
    return None


def upsert_history(user: User, game: Game) -> UserGame:
    record = find_history(user, game.id)
    if record is None:
        record = UserGame(
            game_id=game.id,
            date=game.date,
            stadium=game.stadium_name,
            goals=0,
            assists=0,
            yellow_cards=0,
            red_cards=0,
            points_earned=0,
            attendance="registered",
            status=game.status,
            aggregated=False,
        )
        user.games.append(record)
    record.date = game.date
    record.stadium = game.stadium_name
    return record


def reverse_contribution(user: User, record: UserGame) -> bool:
    """Undo what an earlier aggregation added for this history row."""
    if not record.aggregated:
        return False
    if record.attendance in COUNTED_ATTENDANCE:
        _bump(user, "points", -int(record.points_earned or 0))
        counter = COUNTER_BY_RESULT.get(record.result or "")
        if counter:
            _bump(user, counter, -1)
        _bump(user, "games_played", -1)
        for field in STAT_FIELDS:
            _bump(user, field, -int(getattr(record, field) or 0))
        _bump(user, "attendance_count", -1)
        if record.attendance == "late":
            _bump(user, "late_count", -1)
    elif record.attendance == "absent":
        _bump(user, "absence_count", -1)
    record.aggregated = False
    return True


def _credit_player(user: User, record: UserGame, entry: GamePlayer, team_index: int, result: str) -> None:
    points = POINTS_BY_RESULT[result]
    _bump(user, "points", points)
    _bump(user, COUNTER_BY_RESULT[result], 1)
    _bump(user, "games_played", 1)
    for field in STAT_FIELDS:
        value = int(getattr(entry, field) or 0)
        _bump(user, field, value)
        setattr(record, field, value)
    _bump(user, "attendance_count", 1)
    if entry.attendance == "late":
        _bump(user, "late_count", 1)

    record.points_earned = points
    record.attendance = entry.attendance
    record.result = result
    record.team_index = team_index
    record.status = "finished"
    record.aggregated = True


def _record_absence(user: User, record: UserGame, team_index: int) -> None:
    _bump(user, "absence_count", 1)
    for field in STAT_FIELDS:
        setattr(record, field, 0)
    record.points_earned = 0
    record.attendance = "absent"
    record.result = None
    record.team_index = team_index
    record.status = "finished"
    record.aggregated = True


def aggregate_game_stats(db: Session, game: Game) -> AggregationSummary:
    if game.status != "finished":
        raise InvalidArgument("game_not_finished", "Only finished games can be aggregated.")

    logger.info("aggregation_start game_id=%s outcome=%s", game.id, game.outcome)
    summary = AggregationSummary(game_id=game.id)
    results = team_results(game.outcome)

    emails = [entry.email for entry in roster_entries(game)]
    users: Dict[str, User] = {}
    if emails:
        users = {
            user.email: user
            for user in db.execute(select(User).where(User.email.in_(emails))).scalars().all()
        }

    for team_index, team in enumerate(team_slots(game)):
        result = results[team_index]
        for entry in team:
            if entry is None:
                continue
            if entry.attendance not in COUNTED_ATTENDANCE and entry.attendance != "absent":
                summary.skipped_no_attendance += 1
                continue

            user = users.get(entry.email)
            if user is None:
                logger.warning(
                    "aggregation_user_missing game_id=%s email=%s", game.id, entry.email
                )
                summary.skipped_missing_user += 1
                continue

            record = upsert_history(user, game)
            if reverse_contribution(user, record):
                summary.replayed += 1

            if entry.attendance in COUNTED_ATTENDANCE:
                _credit_player(user, record, entry, team_index, result)
                summary.credited += 1
            else:
                _record_absence(user, record, team_index)
                summary.absences += 1

    logger.info(
        "aggregation_done game_id=%s credited=%s absences=%s replayed=%s skipped=%s",
        game.id,
        summary.credited,
        summary.absences,
        summary.replayed,
        summary.skipped_missing_user + summary.skipped_no_attendance,
    )
    return summary
