from __future__ import annotations

from datetime import date, datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

Attendance = Literal["present", "late", "absent"]


class UsedCreditOut(BaseModel):
    amount: int
    type: str
    expires_at: Optional[datetime] = None


class RosterEntryOut(BaseModel):
    email: str
    first_name: str
    last_name: str
    position: str
    goals: int = 0
    assists: int = 0
    yellow_cards: int = 0
    red_cards: int = 0
    attendance: str = "registered"


class WaitlistEntryOut(BaseModel):
    email: str
    first_name: str
    last_name: str
    position: str


class StadiumSnapshotOut(BaseModel):
    id: Optional[int] = None
    name: str
    address: str
    capacity: int


class HostSnapshotOut(BaseModel):
    id: Optional[int] = None
    email: str
    first_name: str
    last_name: str
    phone_number: str


class GameOut(BaseModel):
    id: int
    date: date
    time: str
    duration: int
    type: str
    status: str
    team_size: int
    stadium: StadiumSnapshotOut
    host: HostSnapshotOut
    teams: List[List[Optional[RosterEntryOut]]]
    waitlist: List[WaitlistEntryOut] = Field(default_factory=list)
    team1_goals: int = 0
    team2_goals: int = 0
    outcome: str = "Draw"
    open_slots: int = 0


class GameCreateIn(BaseModel):
    stadium_id: int = Field(gt=0)
    host_id: int = Field(gt=0)
    date: date
    time: str = Field(min_length=4, max_length=5)
    duration: int = Field(gt=0)
    type: str = Field(min_length=1, max_length=40)


class PlayerStatIn(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    goals: Optional[int] = Field(default=None, ge=0)
    assists: Optional[int] = Field(default=None, ge=0)
    yellow_cards: Optional[int] = Field(default=None, ge=0)
    red_cards: Optional[int] = Field(default=None, ge=0)
    attendance: Optional[Attendance] = None


class StatusUpdateIn(BaseModel):
    status: str
    stats: List[PlayerStatIn] = Field(default_factory=list)


class AggregationOut(BaseModel):
    credited: int
    absences: int
    replayed: int
    skipped_missing_user: int
    skipped_no_attendance: int


class StatusUpdateOut(BaseModel):
    game: GameOut
    unmatched_emails: List[str] = Field(default_factory=list)
    aggregation: Optional[AggregationOut] = None


class SignupOut(BaseModel):
    ok: bool = True
    game_id: int
    team_index: int
    slot_index: int
    used_credits: List[UsedCreditOut]
    remaining_credits: int
    game: GameOut


class CancelOut(BaseModel):
    ok: bool = True
    game_id: int
    refunded_credits: int
    hours_until_kickoff: float
    waitlist_notified: int = 0
    game: GameOut


class WaitlistOut(BaseModel):
    ok: bool = True
    game_id: int
    position: Optional[int] = None
    removed: bool = False
    waitlist: List[str] = Field(default_factory=list)
