from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable

from zealfc.core.errors import InvalidArgument
from zealfc.models import CreditLot, User

SUBSCRIPTION = "subscription"
PERMANENT = "permanent"
CREDIT_TYPES = {SUBSCRIPTION, PERMANENT}

_NEVER = datetime.max.replace(tzinfo=timezone.utc)


def _to_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UsedCredit:
    """One slice of a lot spent on a signup; stored on the roster entry."""

    amount: int
    type: str
    expires_at: datetime | None

    def as_dict(self) -> dict[str, Any]:
        return {
            "amount": self.amount,
            "type": self.type,
            "expires_at": _to_utc(self.expires_at).isoformat() if self.expires_at else None,
        }

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "UsedCredit":
        expires_raw = raw.get("expires_at")
        expires_at = None
        if isinstance(expires_raw, datetime):
            expires_at = _to_utc(expires_raw)
        elif expires_raw:
            expires_at = _to_utc(datetime.fromisoformat(str(expires_raw)))
        return cls(
            amount=int(raw.get("amount") or 0),
            type=str(raw.get("type") or SUBSCRIPTION),
            expires_at=expires_at,
        )


def _consumption_key(lot: CreditLot) -> tuple[int, datetime]:
    if lot.expires_at is None:
        return 1, _NEVER
    return 0, _to_utc(lot.expires_at)


def remove_expired_credits(user: User, now: datetime | None = None) -> int:
    """Drop subscription lots whose expiry has passed. Returns how many were dropped."""
    cutoff = _to_utc(now) if now else _now_utc()
    expired = [
        lot
        for lot in user.credits
        if lot.type == SUBSCRIPTION
        and lot.expires_at is not None
        and _to_utc(lot.expires_at) < cutoff
    ]
    for lot in expired:
        user.credits.remove(lot)
    return len(expired)


def total_available(user: User) -> int:
    return sum(int(lot.amount or 0) for lot in user.credits)


def consume_credits(user: User, amount: int) -> list[UsedCredit] | None:
    """Spend ``amount`` credits, soonest-expiring lots first, permanent lots last.

    All or nothing: on shortfall every lot is restored to its previous amount and
    ``None`` is returned. On success, emptied subscription lots are removed;
    permanent lots stay even at zero.
    """
    if amount <= 0:
        raise InvalidArgument("credit_amount_must_be_positive")

    snapshot = [(lot, lot.amount) for lot in user.credits]
    remaining = amount
    used: list[UsedCredit] = []

    for lot in sorted(user.credits, key=_consumption_key):
        if remaining <= 0:
            break
        available = int(lot.amount or 0)
        if available <= 0:
            continue
        take = min(available, remaining)
        lot.amount = available - take
        remaining -= take
        used.append(UsedCredit(amount=take, type=lot.type, expires_at=lot.expires_at))

    if remaining > 0:
        for lot, original_amount in snapshot:
            lot.amount = original_amount
        return None

    for lot in [lot for lot in user.credits if lot.amount == 0 and lot.type != PERMANENT]:
        user.credits.remove(lot)
    return used


def _permanent_lot(user: User) -> CreditLot | None:
    for lot in user.credits:
        if lot.type == PERMANENT:
            return lot
    return None


def refund_credits(user: User, used: Iterable[UsedCredit]) -> int:
    """Give back exactly the slices recorded at signup, keeping their expiry."""
    refunded = 0
    for item in used:
        if item.amount <= 0:
            continue
        if item.type == PERMANENT:
            bucket = _permanent_lot(user)
            if bucket is not None:
                bucket.amount = int(bucket.amount or 0) + item.amount
                refunded += item.amount
                continue
        user.credits.append(
            CreditLot(amount=item.amount, type=item.type, expires_at=item.expires_at)
        )
        refunded += item.amount
    return refunded


def grant_credits(
    user: User,
    amount: int,
    credit_type: str = SUBSCRIPTION,
    expires_at: datetime | None = None,
) -> CreditLot:
    if amount <= 0:
        raise InvalidArgument("credit_amount_must_be_positive")
    if credit_type not in CREDIT_TYPES:
        raise InvalidArgument("credit_type_not_supported")
    if credit_type == SUBSCRIPTION and expires_at is None:
        raise InvalidArgument("subscription_credits_require_expiry")
    if credit_type == PERMANENT and expires_at is not None:
        raise InvalidArgument("permanent_credits_cannot_expire")

    if credit_type == PERMANENT:
        bucket = _permanent_lot(user)
        if bucket is not None:
            bucket.amount = int(bucket.amount or 0) + amount
            return bucket

    lot = CreditLot(
        amount=amount,
        type=credit_type,
        expires_at=_to_utc(expires_at) if expires_at else None,
    )
    user.credits.append(lot)
    return lot
