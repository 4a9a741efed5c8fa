import os

os.environ["APP_ENV"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["MAILERSEND_API_KEY"] = ""
os.environ["LEAGUE_TIMEZONE"] = "UTC"

from datetime import date, datetime, timedelta, timezone
from itertools import count

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from zealfc.core.identity import Identity, InvalidToken, MissingToken
from zealfc.db.base import Base
from zealfc.models import Admin, CreditLot, Stadium, User
from zealfc.services.games import create_game

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)
GAME_DATE = date(2026, 3, 10)
GAME_TIME = "18:00"

_seq = count(1)


class RecordingNotifier:
    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent = []

    def send(self, recipient, subject, html, text):
        if self.fail:
            raise RuntimeError("mail provider down")
        self.sent.append((recipient.email, subject))
        return True

    def subjects_for(self, email):
        return [subject for to, subject in self.sent if to == email]


class StaticVerifier:
    """Maps raw bearer tokens to identities."""

    def __init__(self, tokens=None) -> None:
        self.tokens = dict(tokens or {})

    def verify(self, token):
        if not token:
            raise MissingToken()
        identity = self.tokens.get(token)
        if identity is None:
            raise InvalidToken("unknown test token")
        return identity


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def notifier():
    return RecordingNotifier()


def make_user(db, credits=None, email=None, first_name="Player", position="Midfielder"):
    n = next(_seq)
    user = User(
        identity_sub=f"user-sub-{n}",
        email=email or f"player{n}@example.com",
        first_name=first_name,
        last_name=f"Number{n}",
        phone_number="555-0100",
        position=position,
    )
    for amount, credit_type, expires_at in credits or []:
        user.credits.append(CreditLot(amount=amount, type=credit_type, expires_at=expires_at))
    db.add(user)
    db.commit()
    return user


def make_admin(db, identity_sub=None):
    n = next(_seq)
    admin = Admin(
        identity_sub=identity_sub or f"admin-sub-{n}",
        email=f"admin{n}@example.com",
        first_name="Host",
        last_name=f"Admin{n}",
        phone_number="555-0199",
    )
    db.add(admin)
    db.commit()
    return admin


def make_game(db, capacity=20, game_date=GAME_DATE, kickoff=GAME_TIME, host=None):
    stadium = Stadium(name="Riverside Park", address="1 River Rd", capacity=capacity)
    db.add(stadium)
    db.commit()
    host = host or make_admin(db)
    return create_game(
        db,
        stadium_id=stadium.id,
        host_id=host.id,
        game_date=game_date,
        kickoff=kickoff,
        duration=90,
        game_type="Friendly",
    )


def subscription(amount=1, days=30):
    return amount, "subscription", NOW + timedelta(days=days)


def permanent(amount=1):
    return amount, "permanent", None


def user_identity(user):
    return Identity(subject=user.identity_sub, pool="user")


def admin_identity(admin):
    return Identity(subject=admin.identity_sub, pool="admin")
