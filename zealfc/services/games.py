from __future__ import annotations

import logging
import re
from datetime import date, datetime, time, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from sqlalchemy import select
from sqlalchemy.orm import Session

from zealfc.core.config import get_settings
from zealfc.core.errors import InvalidArgument, NotFound
from zealfc.models import Admin, Game, Stadium, User

logger = logging.getLogger(__name__)

TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _league_tz(tz_name: str | None = None):
    name = tz_name or get_settings().LEAGUE_TIMEZONE
    if name.upper() == "UTC":
        return timezone.utc
    try:
        return ZoneInfo(name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("unknown_league_timezone name=%s fallback=UTC", name)
        return timezone.utc


def parse_kickoff_time(raw: str) -> time:
    match = TIME_RE.match((raw or "").strip())
    if not match:
        raise InvalidArgument("invalid_time", "Time must use the HH:MM format.")
    return time(int(match.group(1)), int(match.group(2)))


def kickoff_at(game: Game, tz_name: str | None = None) -> datetime:
    """Game date and time in the league's timezone, returned in UTC."""
    local = datetime.combine(game.date, parse_kickoff_time(game.time), tzinfo=_league_tz(tz_name))
    return local.astimezone(timezone.utc)


def hours_until_kickoff(game: Game, now: datetime | None = None, tz_name: str | None = None) -> float:
    current = now or _now_utc()
    if current.tzinfo is None:
        current = current.replace(tzinfo=timezone.utc)
    return (kickoff_at(game, tz_name) - current).total_seconds() / 3600


def touch_game(game: Game, now: datetime | None = None) -> None:
    game.updated_at = now or _now_utc()


def get_game_or_404(db: Session, game_id: int) -> Game:
    game = db.get(Game, game_id)
    if not game:
        raise NotFound("game_not_found", "Game not found.")
    return game


def get_user_or_404(db: Session, user_id: int) -> User:
    user = db.get(User, user_id)
    if not user:
        raise NotFound("user_not_found", "User not found.")
    return user


def find_user_by_sub(db: Session, identity_sub: str) -> Optional[User]:
    return db.execute(select(User).where(User.identity_sub == identity_sub)).scalar_one_or_none()


def find_admin_by_sub(db: Session, identity_sub: str) -> Optional[Admin]:
    return db.execute(select(Admin).where(Admin.identity_sub == identity_sub)).scalar_one_or_none()


def create_game(
    db: Session,
    *,
    stadium_id: int,
    host_id: int,
    game_date: date,
    kickoff: str,
    duration: int,
    game_type: str,
) -> Game:
    parse_kickoff_time(kickoff)
    if duration <= 0:
        raise InvalidArgument("invalid_duration", "Duration must be a positive number of minutes.")
    if not (game_type or "").strip():
        raise InvalidArgument("invalid_type", "Game type is required.")

    stadium = db.get(Stadium, stadium_id)
    if not stadium:
        raise NotFound("stadium_not_found", "Stadium not found.")
    host = db.get(Admin, host_id)
    if not host:
        raise NotFound("host_not_found", "Host not found.")

    team_size = int(stadium.capacity or 0) // 2
    if team_size <= 0:
        raise InvalidArgument("stadium_capacity_too_small", "Stadium capacity must allow two teams.")

    game = Game(
        date=game_date,
        time=kickoff.strip(),
        duration=duration,
        type=game_type.strip(),
        status="upcoming",
        team_size=team_size,
        stadium_id=stadium.id,
        stadium_name=stadium.name,
        stadium_address=stadium.address,
        stadium_capacity=stadium.capacity,
        host_admin_id=host.id,
        host_email=host.email,
        host_first_name=host.first_name,
        host_last_name=host.last_name,
        host_phone_number=host.phone_number,
        host_identity_sub=host.identity_sub,
        team1_goals=0,
        team2_goals=0,
        outcome="Draw",
    )
    db.add(game)
    db.commit()
    db.refresh(game)
    return game


def list_games(db: Session) -> List[Game]:
    return db.execute(select(Game).order_by(Game.date, Game.time, Game.id)).scalars().all()


def list_upcoming_games(db: Session, today: date | None = None) -> List[Game]:
    cutoff = today or _now_utc().astimezone(_league_tz()).date()
    return (
        db.execute(
            select(Game)
            .where(Game.date >= cutoff, Game.status == "upcoming")
            .order_by(Game.date, Game.time, Game.id)
        )
        .scalars()
        .all()
    )
