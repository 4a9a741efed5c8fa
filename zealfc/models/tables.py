from __future__ import annotations

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from zealfc.db.base import Base


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True)
    identity_sub = Column(String(128), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    phone_number = Column(String(32), nullable=False, server_default="")
    position = Column(String(30), nullable=False, server_default="Unknown")

    games_played = Column(Integer, nullable=False, default=0, server_default="0")
    goals = Column(Integer, nullable=False, default=0, server_default="0")
    assists = Column(Integer, nullable=False, default=0, server_default="0")
    yellow_cards = Column(Integer, nullable=False, default=0, server_default="0")
    red_cards = Column(Integer, nullable=False, default=0, server_default="0")
    points = Column(Integer, nullable=False, default=0, server_default="0")
    wins = Column(Integer, nullable=False, default=0, server_default="0")
    losses = Column(Integer, nullable=False, default=0, server_default="0")
    draws = Column(Integer, nullable=False, default=0, server_default="0")
    attendance_count = Column(Integer, nullable=False, default=0, server_default="0")
    late_count = Column(Integer, nullable=False, default=0, server_default="0")
    absence_count = Column(Integer, nullable=False, default=0, server_default="0")

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    credits = relationship(
        "CreditLot",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="CreditLot.id",
    )
    games = relationship(
        "UserGame",
        back_populates="user",
        cascade="all, delete-orphan",
        order_by="UserGame.date",
    )


class Admin(Base):
    __tablename__ = "admins"

    id = Column(Integer, primary_key=True)
    identity_sub = Column(String(128), unique=True, nullable=False, index=True)
    email = Column(String(255), unique=True, nullable=False)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    phone_number = Column(String(32), nullable=False)
    role = Column(String(20), nullable=False, server_default="admin")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)


class Stadium(Base):
    __tablename__ = "stadiums"

    id = Column(Integer, primary_key=True)
    name = Column(String(120), nullable=False)
    address = Column(String(255), nullable=False)
    capacity = Column(Integer, nullable=False)


class CreditLot(Base):
    __tablename__ = "credit_lots"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    type = Column(String(20), nullable=False, server_default="subscription")
    expires_at = Column(DateTime(timezone=True), nullable=True)
    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    user = relationship("User", back_populates="credits")

    __mapper_args__ = {"version_id_col": version}


class Game(Base):
    __tablename__ = "games"

    id = Column(Integer, primary_key=True)
    date = Column(Date, nullable=False, index=True)
    time = Column(String(5), nullable=False)
    duration = Column(Integer, nullable=False)
    type = Column(String(40), nullable=False)
    status = Column(String(20), nullable=False, server_default="upcoming")
    team_size = Column(Integer, nullable=False)

    stadium_id = Column(Integer, nullable=True)
    stadium_name = Column(String(120), nullable=False)
    stadium_address = Column(String(255), nullable=False)
    stadium_capacity = Column(Integer, nullable=False)

    host_admin_id = Column(Integer, nullable=True)
    host_email = Column(String(255), nullable=False)
    host_first_name = Column(String(80), nullable=False)
    host_last_name = Column(String(80), nullable=False)
    host_phone_number = Column(String(32), nullable=False)
    host_identity_sub = Column(String(128), nullable=False)

    team1_goals = Column(Integer, nullable=False, default=0, server_default="0")
    team2_goals = Column(Integer, nullable=False, default=0, server_default="0")
    outcome = Column(String(20), nullable=False, server_default="Draw")

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    players = relationship(
        "GamePlayer",
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="[GamePlayer.team_index, GamePlayer.slot_index]",
    )
    waitlist = relationship(
        "GameWaitlistEntry",
        back_populates="game",
        cascade="all, delete-orphan",
        order_by="GameWaitlistEntry.id",
    )

    __mapper_args__ = {"version_id_col": version}


class GamePlayer(Base):
    __tablename__ = "game_players"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    team_index = Column(Integer, nullable=False)
    slot_index = Column(Integer, nullable=False)
    email = Column(String(255), nullable=False)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    position = Column(String(30), nullable=False, server_default="Unknown")
    goals = Column(Integer, nullable=False, default=0, server_default="0")
    assists = Column(Integer, nullable=False, default=0, server_default="0")
    yellow_cards = Column(Integer, nullable=False, default=0, server_default="0")
    red_cards = Column(Integer, nullable=False, default=0, server_default="0")
    attendance = Column(String(20), nullable=False, server_default="registered")
    used_credits = Column(JSON, nullable=False, default=list)

    game = relationship("Game", back_populates="players")

    __table_args__ = (
        UniqueConstraint("game_id", "team_index", "slot_index"),
        UniqueConstraint("game_id", "email"),
    )


class GameWaitlistEntry(Base):
    __tablename__ = "game_waitlist"

    id = Column(Integer, primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    first_name = Column(String(80), nullable=False)
    last_name = Column(String(80), nullable=False)
    position = Column(String(30), nullable=False, server_default="Unknown")
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    game = relationship("Game", back_populates="waitlist")

    __table_args__ = (UniqueConstraint("game_id", "email"),)


class UserGame(Base):
    __tablename__ = "user_games"

    user_id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id"), primary_key=True)
    date = Column(Date, nullable=False)
    stadium = Column(String(120), nullable=False)
    goals = Column(Integer, nullable=False, default=0, server_default="0")
    assists = Column(Integer, nullable=False, default=0, server_default="0")
    yellow_cards = Column(Integer, nullable=False, default=0, server_default="0")
    red_cards = Column(Integer, nullable=False, default=0, server_default="0")
    attendance = Column(String(20), nullable=False, server_default="absent")
    points_earned = Column(Integer, nullable=False, default=0, server_default="0")
    result = Column(String(10), nullable=True)
    team_index = Column(Integer, nullable=True)
    status = Column(String(20), nullable=False, server_default="upcoming")
    aggregated = Column(Boolean, nullable=False, default=False, server_default="false")

    user = relationship("User", back_populates="games")


class ActionLog(Base):
    __tablename__ = "action_logs"

    id = Column(Integer, primary_key=True)
    category = Column(String(30), nullable=False)
    action = Column(String(50), nullable=False)
    actor_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    actor_admin_id = Column(Integer, ForeignKey("admins.id"), nullable=True)
    game_id = Column(Integer, ForeignKey("games.id"), nullable=True)
    target_user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    details = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
