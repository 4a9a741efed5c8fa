from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from zealfc.api.deps import get_current_user, get_identity, get_notifier
from zealfc.core.identity import Identity
from zealfc.db.session import get_db
from zealfc.models import Game, User
from zealfc.schemas.games import (
    AggregationOut,
    CancelOut,
    GameOut,
    HostSnapshotOut,
    RosterEntryOut,
    SignupOut,
    StadiumSnapshotOut,
    StatusUpdateIn,
    StatusUpdateOut,
    UsedCreditOut,
    WaitlistEntryOut,
    WaitlistOut,
)
from zealfc.services.game_status import PlayerStatDelta, update_game_status
from zealfc.services.games import get_game_or_404, list_games, list_upcoming_games
from zealfc.services.notifications import Notifier
from zealfc.services.registrations import (
    cancel_signup,
    join_waitlist,
    leave_waitlist,
    signup_for_game,
)
from zealfc.services.roster import team_slots

router = APIRouter(prefix="/games", tags=["games"])


def game_out(game: Game) -> GameOut:
    teams = [
        [
            RosterEntryOut(
                email=entry.email,
                first_name=entry.first_name,
                last_name=entry.last_name,
                position=entry.position,
                goals=entry.goals or 0,
                assists=entry.assists or 0,
                yellow_cards=entry.yellow_cards or 0,
                red_cards=entry.red_cards or 0,
                attendance=entry.attendance,
            )
            if entry is not None
            else None
            for entry in team
        ]
        for team in team_slots(game)
    ]
    open_slots = sum(1 for team in teams for entry in team if entry is None)
    return GameOut(
        id=game.id,
        date=game.date,
        time=game.time,
        duration=game.duration,
        type=game.type,
        status=game.status,
        team_size=game.team_size,
        stadium=StadiumSnapshotOut(
            id=game.stadium_id,
            name=game.stadium_name,
            address=game.stadium_address,
            capacity=game.stadium_capacity,
        ),
        host=HostSnapshotOut(
            id=game.host_admin_id,
            email=game.host_email,
            first_name=game.host_first_name,
            last_name=game.host_last_name,
            phone_number=game.host_phone_number,
        ),
        teams=teams,
        waitlist=[
            WaitlistEntryOut(
                email=item.email,
                first_name=item.first_name,
                last_name=item.last_name,
                position=item.position,
            )
            for item in game.waitlist
        ],
        team1_goals=game.team1_goals or 0,
        team2_goals=game.team2_goals or 0,
        outcome=game.outcome,
        open_slots=open_slots,
    )


@router.get("", response_model=List[GameOut])
def games_list(db: Session = Depends(get_db)) -> List[GameOut]:
    return [game_out(game) for game in list_games(db)]


@router.get("/upcoming", response_model=List[GameOut])
def games_upcoming(db: Session = Depends(get_db)) -> List[GameOut]:
    return [game_out(game) for game in list_upcoming_games(db)]


@router.get("/{game_id}", response_model=GameOut)
def game_detail(game_id: int, db: Session = Depends(get_db)) -> GameOut:
    return game_out(get_game_or_404(db, game_id))


@router.post("/{game_id}/signup", response_model=SignupOut)
def game_signup(
    game_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
) -> SignupOut:
    result = signup_for_game(db, game_id=game_id, user_id=user.id, notifier=notifier)
    return SignupOut(
        game_id=result.game.id,
        team_index=result.team_index,
        slot_index=result.slot_index,
        used_credits=[
            UsedCreditOut(amount=item.amount, type=item.type, expires_at=item.expires_at)
            for item in result.used_credits
        ],
        remaining_credits=result.remaining_credits,
        game=game_out(result.game),
    )


@router.post("/{game_id}/cancel-signup", response_model=CancelOut)
def game_cancel_signup(
    game_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
) -> CancelOut:
    result = cancel_signup(db, game_id=game_id, user_id=user.id, notifier=notifier)
    return CancelOut(
        game_id=result.game.id,
        refunded_credits=result.refunded,
        hours_until_kickoff=round(result.hours_until_kickoff, 2),
        waitlist_notified=result.waitlist_notified,
        game=game_out(result.game),
    )


@router.post("/{game_id}/waitlist", response_model=WaitlistOut)
def game_join_waitlist(
    game_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
) -> WaitlistOut:
    result = join_waitlist(db, game_id=game_id, user_id=user.id, notifier=notifier)
    return WaitlistOut(game_id=result.game.id, position=result.position, waitlist=result.waitlist)


@router.delete("/{game_id}/waitlist", response_model=WaitlistOut)
def game_leave_waitlist(
    game_id: int,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
    notifier: Notifier = Depends(get_notifier),
) -> WaitlistOut:
    result = leave_waitlist(db, game_id=game_id, user_id=user.id, notifier=notifier)
    return WaitlistOut(game_id=result.game.id, removed=result.removed, waitlist=result.waitlist)


@router.patch("/{game_id}/status", response_model=StatusUpdateOut)
def game_update_status(
    game_id: int,
    payload: StatusUpdateIn,
    db: Session = Depends(get_db),
    identity: Identity = Depends(get_identity),
) -> StatusUpdateOut:
    result = update_game_status(
        db,
        game_id=game_id,
        caller_sub=identity.subject,
        status=payload.status,
        stats=[PlayerStatDelta(**item.model_dump()) for item in payload.stats],
    )
    aggregation = None
    if result.aggregation is not None:
        summary = result.aggregation.as_dict()
        summary.pop("game_id")
        aggregation = AggregationOut(**summary)
    return StatusUpdateOut(
        game=game_out(result.game),
        unmatched_emails=result.unmatched,
        aggregation=aggregation,
    )
