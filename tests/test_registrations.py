from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from conftest import (
    NOW,
    RecordingNotifier,
    make_admin,
    make_game,
    make_user,
    permanent,
    subscription,
)
from zealfc.core.errors import Conflict, InsufficientFunds, Internal, NotFound
from zealfc.models import ActionLog, Game, UserGame
from zealfc.services import roster
from zealfc.services.credits import _to_utc, total_available
from zealfc.services.game_status import PlayerStatDelta, update_game_status
from zealfc.services.registrations import (
    cancel_signup,
    join_waitlist,
    leave_waitlist,
    signup_for_game,
)

KICKOFF = datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)


def _signup(db, game, user, notifier, now=NOW):
    return signup_for_game(db, game_id=game.id, user_id=user.id, notifier=notifier, now=now)


def _assert_exclusive(game):
    seen = []
    for team in roster.team_slots(game):
        seen.extend(entry.email for entry in team if entry is not None)
    seen.extend(item.email for item in game.waitlist)
    assert len(seen) == len(set(seen))


def test_signup_assigns_first_slot_and_consumes_one_credit(db, notifier):
    """First signup takes team 1 slot 1 and one credit."""
    game = make_game(db)
    user = make_user(db, credits=[subscription(2, days=5)])

    result = _signup(db, game, user, notifier)

    assert (result.team_index, result.slot_index) == (0, 0)
    assert result.remaining_credits == 1
    assert total_available(user) == 1
    entry = roster.find_roster_entry(game, user.email)
    assert entry.used_credits[0]["amount"] == 1
    history = db.get(UserGame, (user.id, game.id))
    assert history.attendance == "registered"
    assert notifier.subjects_for(user.email) == ["Game Signup Confirmation"]
    assert db.execute(select(ActionLog).where(ActionLog.action == "signup")).scalar_one()


def test_signup_preconditions(db, notifier):
    """Unknown user or game, and a repeat signup, are rejected."""
    game = make_game(db)
    user = make_user(db, credits=[permanent(3)])

    with pytest.raises(NotFound) as excinfo:
        signup_for_game(db, game_id=game.id, user_id=9999, notifier=notifier, now=NOW)
    assert excinfo.value.detail == "user_not_found"

    with pytest.raises(NotFound) as excinfo:
        signup_for_game(db, game_id=9999, user_id=user.id, notifier=notifier, now=NOW)
    assert excinfo.value.detail == "game_not_found"

    _signup(db, game, user, notifier)
    with pytest.raises(Conflict) as excinfo:
        _signup(db, game, user, notifier)
    assert excinfo.value.detail == "already_signed_up"
    assert total_available(user) == 2


def test_signup_rejects_when_only_expired_credits_remain(db, notifier):
    """Expired credit does not pay for a signup."""
    game = make_game(db)
    user = make_user(db, credits=[(1, "subscription", NOW - timedelta(hours=1))])

    with pytest.raises(InsufficientFunds):
        _signup(db, game, user, notifier)

    assert not roster.is_signed_up(game, user.email)
    assert notifier.sent == []


def test_capacity_twenty_fills_team_zero_then_team_one_then_rejects(db, notifier):
    """Twenty players fill team 1 then team 2; the next is refused."""
    game = make_game(db, capacity=20)
    users = [make_user(db, credits=[permanent(1)]) for _ in range(21)]

    locations = [
        (result.team_index, result.slot_index)
        for result in (_signup(db, game, user, notifier) for user in users[:20])
    ]

    assert locations[:10] == [(0, i) for i in range(10)]
    assert locations[10] == (1, 0)
    with pytest.raises(Conflict) as excinfo:
        _signup(db, game, users[20], notifier)
    assert excinfo.value.detail == "game_full"
    assert total_available(users[20]) == 1
    assert len(roster.roster_entries(game)) == 20


def test_failed_credit_consumption_undoes_slot_assignment(db, notifier, monkeypatch):
    """A payment failure releases the slot it had taken."""
    game = make_game(db)
    user = make_user(db, credits=[permanent(1)])
    monkeypatch.setattr("zealfc.services.credits.consume_credits", lambda user, amount: None)

    with pytest.raises(InsufficientFunds):
        _signup(db, game, user, notifier)

    db.refresh(game)
    assert not roster.is_signed_up(game, user.email)
    assert roster.team_slots(game)[0][0] is None
    assert total_available(user) == 1
    assert db.get(UserGame, (user.id, game.id)) is None


def test_cancel_outside_window_restores_exact_lot(db, notifier):
    """Early cancellation refunds the exact lot spent."""
    game = make_game(db)
    day10 = NOW + timedelta(days=10)
    user = make_user(db, credits=[(1, "subscription", day10)])
    _signup(db, game, user, notifier)
    assert total_available(user) == 0

    result = cancel_signup(db, game_id=game.id, user_id=user.id, notifier=notifier, now=NOW)

    assert result.refunded == 1
    assert result.hours_until_kickoff >= 48
    lots = [(lot.amount, lot.type, _to_utc(lot.expires_at)) for lot in user.credits]
    assert lots == [(1, "subscription", day10)]
    assert not roster.is_signed_up(game, user.email)
    assert db.get(UserGame, (user.id, game.id)) is None
    assert notifier.subjects_for(user.email)[-1] == "Game Cancellation"


def test_cancel_inside_window_forfeits_credit(db, notifier):
    """Late cancellation keeps the credit."""
    game = make_game(db)
    user = make_user(db, credits=[subscription(2, days=20)])
    _signup(db, game, user, notifier)
    after_signup = total_available(user)

    late = KICKOFF - timedelta(hours=10)
    result = cancel_signup(db, game_id=game.id, user_id=user.id, notifier=notifier, now=late)

    assert result.refunded == 0
    assert result.hours_until_kickoff == pytest.approx(10)
    assert total_available(user) == after_signup


def test_cancel_exactly_at_window_boundary_refunds(db, notifier):
    """The refund window boundary is inclusive."""
    game = make_game(db)
    user = make_user(db, credits=[permanent(1)])
    _signup(db, game, user, notifier)

    result = cancel_signup(
        db,
        game_id=game.id,
        user_id=user.id,
        notifier=notifier,
        now=KICKOFF - timedelta(hours=48),
    )

    assert result.refunded == 1
    assert [lot.amount for lot in user.credits] == [1]


def test_cancel_when_not_on_roster(db, notifier):
    """Cancelling without a roster entry is 404."""
    game = make_game(db)
    user = make_user(db, credits=[permanent(1)])

    with pytest.raises(NotFound) as excinfo:
        cancel_signup(db, game_id=game.id, user_id=user.id, notifier=notifier, now=NOW)
    assert excinfo.value.detail == "not_on_roster"


def test_cancel_notifies_every_waitlisted_player(db, notifier):
    """Every waitlisted player hears about a freed spot."""
    game = make_game(db, capacity=2)
    first, second = make_user(db, credits=[permanent(1)]), make_user(db, credits=[permanent(1)])
    waiting = [make_user(db) for _ in range(2)]
    _signup(db, game, first, notifier)
    _signup(db, game, second, notifier)
    for user in waiting:
        join_waitlist(db, game_id=game.id, user_id=user.id, notifier=notifier)
    _assert_exclusive(game)

    result = cancel_signup(db, game_id=game.id, user_id=first.id, notifier=notifier, now=NOW)

    assert result.waitlist_notified == 2
    for user in waiting:
        assert "Spot Available for Game" in notifier.subjects_for(user.email)
    _assert_exclusive(game)


def test_signup_from_waitlist_moves_player_onto_roster(db, notifier):
    """Signing up from the waitlist moves the player."""
    game = make_game(db, capacity=2)
    holder = make_user(db, credits=[permanent(1)])
    other = make_user(db, credits=[permanent(1)])
    waiting = make_user(db, credits=[permanent(1)])
    _signup(db, game, holder, notifier)
    _signup(db, game, other, notifier)
    join_waitlist(db, game_id=game.id, user_id=waiting.id, notifier=notifier)
    assert db.get(UserGame, (waiting.id, game.id)).attendance == "waitlist"

    cancel_signup(db, game_id=game.id, user_id=holder.id, notifier=notifier, now=NOW)
    _signup(db, game, waiting, notifier)

    assert roster.is_signed_up(game, waiting.email)
    assert not roster.is_waitlisted(game, waiting.email)
    assert db.get(UserGame, (waiting.id, game.id)).attendance == "registered"
    _assert_exclusive(game)


def test_notification_failure_does_not_fail_signup_or_cancel(db):
    """Mail outages do not fail signup or cancel."""
    game = make_game(db)
    user = make_user(db, credits=[permanent(1)])
    broken = RecordingNotifier(fail=True)

    result = _signup(db, game, user, broken)
    cancel = cancel_signup(db, game_id=game.id, user_id=user.id, notifier=broken, now=NOW)

    assert result.team_index == 0
    assert cancel.refunded == 1


def test_join_waitlist_conflicts_and_positions(db, notifier):
    """Waitlist positions are ordered; duplicates conflict."""
    game = make_game(db)
    signed = make_user(db, credits=[permanent(1)])
    first, second = make_user(db), make_user(db)
    _signup(db, game, signed, notifier)

    with pytest.raises(Conflict) as excinfo:
        join_waitlist(db, game_id=game.id, user_id=signed.id, notifier=notifier)
    assert excinfo.value.detail == "already_in_game"

    assert join_waitlist(db, game_id=game.id, user_id=first.id, notifier=notifier).position == 1
    assert join_waitlist(db, game_id=game.id, user_id=second.id, notifier=notifier).position == 2
    with pytest.raises(Conflict):
        join_waitlist(db, game_id=game.id, user_id=first.id, notifier=notifier)
    assert notifier.subjects_for(first.email) == ["Waitlist Confirmation for Game"]


def test_leave_waitlist_removes_entry_and_history(db, notifier):
    """Leaving the waitlist drops the entry and history row."""
    game = make_game(db)
    user = make_user(db)
    join_waitlist(db, game_id=game.id, user_id=user.id, notifier=notifier)

    result = leave_waitlist(db, game_id=game.id, user_id=user.id, notifier=notifier)

    assert result.removed is True
    assert result.waitlist == []
    assert db.get(UserGame, (user.id, game.id)) is None
    assert notifier.subjects_for(user.email)[-1] == "Removed from Waitlist for Game"

    again = leave_waitlist(db, game_id=game.id, user_id=user.id, notifier=notifier)
    assert again.removed is False
    assert len(notifier.subjects_for(user.email)) == 2


def _store_down(*args, **kwargs):
    raise OperationalError("COMMIT", {}, Exception("disk I/O error"))


def test_stale_game_cannot_claim_an_already_taken_slot(db, engine, notifier):
    """A signup working from an outdated game copy loses the race instead of sharing a slot."""
    game = make_game(db)
    first = make_user(db, credits=[permanent(1)])
    second = make_user(db, credits=[permanent(1)])
    other = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        stale = other.get(Game, game.id)
        assert roster.team_slots(stale)[0][0] is None

        _signup(db, game, first, notifier)
        with pytest.raises(Conflict) as excinfo:
            signup_for_game(other, game_id=game.id, user_id=second.id, notifier=notifier, now=NOW)
    finally:
        other.close()

    assert excinfo.value.detail == "game_modified_concurrently"
    db.refresh(game)
    assert [entry.email for entry in roster.roster_entries(game)] == [first.email]
    db.expire(second)
    assert total_available(second) == 1
    assert db.get(UserGame, (second.id, game.id)) is None
    assert notifier.subjects_for(second.email) == []


def test_failed_account_write_surfaces_as_internal_and_leaves_no_roster_entry(db, notifier, monkeypatch):
    """When the final commit fails the whole signup is rolled back and reported."""
    game = make_game(db)
    user = make_user(db, credits=[permanent(1)])
    monkeypatch.setattr(db, "commit", _store_down)

    with pytest.raises(Internal) as excinfo:
        _signup(db, game, user, notifier)

    assert excinfo.value.detail == "user_write_failed"
    assert excinfo.value.context == {"game_id": game.id, "user_id": user.id, "step": "signup_commit"}
    game = db.get(Game, game.id)
    assert not roster.is_signed_up(game, user.email)
    assert total_available(user) == 1
    assert db.get(UserGame, (user.id, game.id)) is None
    assert notifier.sent == []


def test_failed_signup_undo_is_escalated(db, notifier, monkeypatch):
    """If the slot cannot be released after a payment failure the caller gets Internal."""
    game = make_game(db)
    user = make_user(db, credits=[permanent(1)])
    monkeypatch.setattr("zealfc.services.credits.consume_credits", lambda user, amount: None)
    monkeypatch.setattr(db, "rollback", _store_down)

    with pytest.raises(Internal) as excinfo:
        _signup(db, game, user, notifier)

    assert excinfo.value.detail == "signup_compensation_failed"
    assert excinfo.value.context["step"] == "undo_assignment"
    assert notifier.sent == []


def test_cancel_after_finished_game_reverses_career_totals(db, notifier):
    """Leaving a game that was already aggregated takes its points and stats back."""
    admin = make_admin(db)
    game = make_game(db, capacity=2, host=admin)
    scorer = make_user(db, credits=[permanent(1)])
    opponent = make_user(db, credits=[permanent(1)])
    _signup(db, game, scorer, notifier)
    _signup(db, game, opponent, notifier)
    update_game_status(
        db,
        game_id=game.id,
        caller_sub=admin.identity_sub,
        status="finished",
        stats=[
            PlayerStatDelta(email=scorer.email, goals=2, attendance="present"),
            PlayerStatDelta(email=opponent.email, attendance="present"),
        ],
    )
    assert (scorer.points, scorer.goals, scorer.games_played, scorer.wins) == (3, 2, 1, 1)

    cancel_signup(db, game_id=game.id, user_id=scorer.id, notifier=notifier, now=NOW)

    assert (scorer.points, scorer.goals, scorer.games_played, scorer.wins) == (0, 0, 0, 0)
    assert scorer.attendance_count == 0
    assert db.get(UserGame, (scorer.id, game.id)) is None
    assert (opponent.losses, opponent.games_played) == (1, 1)
