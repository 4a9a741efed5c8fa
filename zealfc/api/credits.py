from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from zealfc.api.deps import get_current_user
from zealfc.db.session import get_db
from zealfc.models import User
from zealfc.schemas.credits import CreditLotOut, CreditsOut
from zealfc.services.credits import remove_expired_credits, total_available
from zealfc.services.locks import workflow_locks

router = APIRouter(prefix="/credits", tags=["credits"])


def credits_out(user: User, expired_removed: int = 0) -> CreditsOut:
    return CreditsOut(
        user_id=user.id,
        total=total_available(user),
        lots=[
            CreditLotOut(id=lot.id, amount=lot.amount, type=lot.type, expires_at=lot.expires_at)
            for lot in user.credits
        ],
        expired_removed=expired_removed,
    )


@router.get("/me", response_model=CreditsOut)
def my_credits(
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
) -> CreditsOut:
    with workflow_locks.hold(("user", user.id)):
        removed = remove_expired_credits(user)
        if removed:
            db.commit()
        return credits_out(user, removed)
