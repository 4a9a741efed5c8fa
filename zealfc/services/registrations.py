from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from zealfc.core.config import get_settings
from zealfc.core.errors import Conflict, InsufficientFunds, Internal, NotFound
from zealfc.models import Game, User
from zealfc.services import credits as ledger
from zealfc.services import roster
from zealfc.services.action_log import log_action
from zealfc.services.credits import UsedCredit
from zealfc.services.games import get_game_or_404, get_user_or_404, hours_until_kickoff, touch_game
from zealfc.services.locks import workflow_locks
from zealfc.services.notifications import (
    EmailMessage,
    Notifier,
    Recipient,
    cancellation_notice,
    notify_each,
    notify_safely,
    signup_confirmation,
    spot_available,
    waitlist_joined,
    waitlist_left,
)
from zealfc.services.persistence import commit_workflow, write_game_side
from zealfc.services.stats_aggregation import find_history, reverse_contribution, upsert_history

logger = logging.getLogger(__name__)


@dataclass
class SignupResult:
    game: Game
    team_index: int
    slot_index: int
    used_credits: List[UsedCredit]
    remaining_credits: int


@dataclass
class CancelResult:
    game: Game
    hours_until_kickoff: float
    refunded: int
    waitlist_notified: int = 0


@dataclass
class WaitlistResult:
    game: Game
    position: Optional[int] = None
    removed: bool = False
    waitlist: List[str] = field(default_factory=list)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _recipient(user: User) -> Recipient:
    return Recipient(email=user.email, name=f"{user.first_name} {user.last_name}".strip())


def _undo_assignment(db: Session, game: Game, user: User) -> None:
    roster.remove(game, user.email)
    try:
        db.rollback()
    except SQLAlchemyError as exc:
        logger.error(
            "signup_compensation_failed game_id=%s user_id=%s step=undo_assignment detail=%s",
            game.id,
            user.id,
            exc,
        )
        raise Internal(
            "signup_compensation_failed",
            "The signup could not be undone after a payment failure.",
            game_id=game.id,
            user_id=user.id,
            step="undo_assignment",
        ) from exc
    logger.info("signup_compensated game_id=%s user_id=%s", game.id, user.id)


def signup_for_game(
    db: Session,
    *,
    game_id: int,
    user_id: int,
    notifier: Notifier,
    now: datetime | None = None,
) -> SignupResult:
    settings = get_settings()
    cost = settings.SIGNUP_CREDIT_COST
    current = now or _now_utc()

    with workflow_locks.hold_game_and_user(game_id, user_id):
        user = get_user_or_404(db, user_id)
        game = get_game_or_404(db, game_id)

        if roster.is_signed_up(game, user.email):
            raise Conflict("already_signed_up", "You are already signed up for this game.")

        ledger.remove_expired_credits(user, current)
        if ledger.total_available(user) < cost:
            db.rollback()
            raise InsufficientFunds(
                "insufficient_credits", "Not enough credits to sign up for the game."
            )

        roster.remove_from_waitlist(game, user.email)
        entry = roster.new_roster_entry(user)
        location = roster.assign(game, entry)
        if location is None:
            db.rollback()
            raise Conflict("game_full", "Game is full.")
        touch_game(game, current)
        write_game_side(db, game_id=game.id, user_id=user.id, step="signup_assign")

        used = ledger.consume_credits(user, cost)
        if used is None:
            _undo_assignment(db, game, user)
            raise InsufficientFunds(
                "insufficient_credits", "Not enough credits to sign up for the game."
            )
        entry.used_credits = [item.as_dict() for item in used]

        record = upsert_history(user, game)
        record.attendance = "registered"
        record.status = game.status

        log_action(
            db,
            category="game",
            action="signup",
            actor_user_id=user.id,
            game_id=game.id,
            details={
                "team_index": location[0],
                "slot_index": location[1],
                "used_credits": entry.used_credits,
            },
            commit=False,
        )
        commit_workflow(db, game_id=game.id, user_id=user.id, step="signup_commit")
        remaining = ledger.total_available(user)

    logger.info(
        "signup_ok game_id=%s user_id=%s team=%s slot=%s",
        game.id,
        user.id,
        location[0],
        location[1],
    )
    notify_safely(
        notifier,
        _recipient(user),
        signup_confirmation(user.first_name, game, cost, settings.EMAIL_BRAND),
    )
    return SignupResult(
        game=game,
        team_index=location[0],
        slot_index=location[1],
        used_credits=used,
        remaining_credits=remaining,
    )


def cancel_signup(
    db: Session,
    *,
    game_id: int,
    user_id: int,
    notifier: Notifier,
    now: datetime | None = None,
) -> CancelResult:
    settings = get_settings()
    current = now or _now_utc()

    with workflow_locks.hold_game_and_user(game_id, user_id):
        user = get_user_or_404(db, user_id)
        game = get_game_or_404(db, game_id)

        entry = roster.remove(game, user.email)
        if entry is None:
            raise NotFound("not_on_roster", "User is not signed up for this game.")
        used = [UsedCredit.from_dict(raw) for raw in (entry.used_credits or [])]
        touch_game(game, current)
        write_game_side(db, game_id=game.id, user_id=user.id, step="cancel_remove")

        record = find_history(user, game.id)
        if record is not None:
            reverse_contribution(user, record)
            user.games.remove(record)

        hours = hours_until_kickoff(game, current)
        refunded = 0
        if hours >= settings.REFUND_WINDOW_HOURS:
            refunded = ledger.refund_credits(user, used)

        log_action(
            db,
            category="game",
            action="cancel_signup",
            actor_user_id=user.id,
            game_id=game.id,
            details={"hours_until_kickoff": round(hours, 2), "refunded": refunded},
            commit=False,
        )
        commit_workflow(db, game_id=game.id, user_id=user.id, step="cancel_commit")
        waiting = [(item.email, item.first_name, item.last_name) for item in game.waitlist]

    logger.info(
        "cancel_ok game_id=%s user_id=%s hours=%.2f refunded=%s",
        game.id,
        user.id,
        hours,
        refunded,
    )
    notify_safely(
        notifier,
        _recipient(user),
        cancellation_notice(
            user.first_name,
            game,
            refunded > 0,
            settings.EMAIL_BRAND,
            settings.REFUND_WINDOW_HOURS,
        ),
    )
    messages: List[tuple[Recipient, EmailMessage]] = [
        (
            Recipient(email=email, name=f"{first_name} {last_name}".strip()),
            spot_available(first_name, game, settings.EMAIL_BRAND),
        )
        for email, first_name, last_name in waiting
    ]
    notified = notify_each(notifier, messages)
    return CancelResult(
        game=game,
        hours_until_kickoff=hours,
        refunded=refunded,
        waitlist_notified=notified,
    )


def join_waitlist(
    db: Session,
    *,
    game_id: int,
    user_id: int,
    notifier: Notifier,
) -> WaitlistResult:
    settings = get_settings()

    with workflow_locks.hold_game_and_user(game_id, user_id):
        user = get_user_or_404(db, user_id)
        game = get_game_or_404(db, game_id)

        if roster.is_signed_up(game, user.email) or roster.is_waitlisted(game, user.email):
            raise Conflict(
                "already_in_game",
                "You are already signed up for this game or on the waitlist.",
            )

        roster.add_to_waitlist(game, roster.new_waitlist_entry(user))
        touch_game(game)
        write_game_side(db, game_id=game.id, user_id=user.id, step="waitlist_join")

        record = upsert_history(user, game)
        record.attendance = "waitlist"
        record.status = game.status
        log_action(
            db,
            category="game",
            action="waitlist_join",
            actor_user_id=user.id,
            game_id=game.id,
            commit=False,
        )
        commit_workflow(db, game_id=game.id, user_id=user.id, step="waitlist_join_commit")
        emails = [item.email for item in game.waitlist]

    notify_safely(
        notifier,
        _recipient(user),
        waitlist_joined(user.first_name, game, settings.EMAIL_BRAND),
    )
    return WaitlistResult(
        game=game,
        position=emails.index(user.email) + 1,
        waitlist=emails,
    )


def leave_waitlist(
    db: Session,
    *,
    game_id: int,
    user_id: int,
    notifier: Notifier,
) -> WaitlistResult:
    settings = get_settings()

    with workflow_locks.hold_game_and_user(game_id, user_id):
        user = get_user_or_404(db, user_id)
        game = get_game_or_404(db, game_id)

        removed = roster.remove_from_waitlist(game, user.email) is not None
        if removed:
            touch_game(game)
        write_game_side(db, game_id=game.id, user_id=user.id, step="waitlist_leave")

        record = find_history(user, game.id)
        if record is not None and record.attendance == "waitlist":
            user.games.remove(record)
        if removed:
            log_action(
                db,
                category="game",
                action="waitlist_leave",
                actor_user_id=user.id,
                game_id=game.id,
                commit=False,
            )
        commit_workflow(db, game_id=game.id, user_id=user.id, step="waitlist_leave_commit")
        emails = [item.email for item in game.waitlist]

    if removed:
        notify_safely(
            notifier,
            _recipient(user),
            waitlist_left(user.first_name, game, settings.EMAIL_BRAND),
        )
    return WaitlistResult(game=game, removed=removed, waitlist=emails)
