from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

CreditType = Literal["subscription", "permanent"]


class CreditLotOut(BaseModel):
    id: Optional[int] = None
    amount: int
    type: CreditType
    expires_at: Optional[datetime] = None


class CreditsOut(BaseModel):
    user_id: int
    total: int
    lots: List[CreditLotOut]
    expired_removed: int = 0


class CreditGrantIn(BaseModel):
    amount: int = Field(gt=0, le=1000)
    type: CreditType = "subscription"
    expires_at: Optional[datetime] = None
