from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from zealfc.api.credits import credits_out
from zealfc.api.deps import get_current_admin
from zealfc.api.games import game_out
from zealfc.db.session import get_db
from zealfc.models import Admin
from zealfc.schemas.credits import CreditGrantIn, CreditsOut
from zealfc.schemas.games import GameCreateIn, GameOut
from zealfc.services.action_log import log_action
from zealfc.services.credits import grant_credits, remove_expired_credits
from zealfc.services.games import create_game, get_user_or_404
from zealfc.services.locks import workflow_locks
from zealfc.services.persistence import commit_workflow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/games", response_model=GameOut, status_code=201)
def admin_create_game(
    payload: GameCreateIn,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> GameOut:
    game = create_game(
        db,
        stadium_id=payload.stadium_id,
        host_id=payload.host_id,
        game_date=payload.date,
        kickoff=payload.time,
        duration=payload.duration,
        game_type=payload.type,
    )
    log_action(
        db,
        category="admin",
        action="game_create",
        actor_admin_id=admin.id,
        game_id=game.id,
        details={"stadium_id": payload.stadium_id, "host_id": payload.host_id},
    )
    logger.info("game_created game_id=%s admin_id=%s", game.id, admin.id)
    return game_out(game)


@router.post("/users/{user_id}/credits", response_model=CreditsOut)
def admin_grant_credits(
    user_id: int,
    payload: CreditGrantIn,
    db: Session = Depends(get_db),
    admin: Admin = Depends(get_current_admin),
) -> CreditsOut:
    with workflow_locks.hold(("user", user_id)):
        user = get_user_or_404(db, user_id)
        removed = remove_expired_credits(user)
        lot = grant_credits(user, payload.amount, payload.type, payload.expires_at)
        log_action(
            db,
            category="admin",
            action="credit_grant",
            actor_admin_id=admin.id,
            target_user_id=user.id,
            details={
                "amount": payload.amount,
                "type": payload.type,
                "expires_at": lot.expires_at,
            },
            commit=False,
        )
        commit_workflow(db, game_id=None, user_id=user.id, step="credit_grant")
        logger.info(
            "credits_granted user_id=%s amount=%s type=%s admin_id=%s",
            user.id,
            payload.amount,
            payload.type,
            admin.id,
        )
        return credits_out(user, removed)
