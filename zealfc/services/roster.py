from __future__ import annotations

from typing import List, Optional, Tuple

from zealfc.models import Game, GamePlayer, GameWaitlistEntry, User

TEAM_COUNT = 2

SlotLocation = Tuple[int, int]


def new_roster_entry(user: User) -> GamePlayer:
    return GamePlayer(
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        position=user.position or "Unknown",
        goals=0,
        assists=0,
        yellow_cards=0,
        red_cards=0,
        attendance="registered",
        used_credits=[],
    )


def new_waitlist_entry(user: User) -> GameWaitlistEntry:
    return GameWaitlistEntry(
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        position=user.position or "Unknown",
    )


def team_slots(game: Game) -> List[List[Optional[GamePlayer]]]:
    """Both teams as fixed-length slot lists, ``None`` for empty slots."""
    size = int(game.team_size or 0)
    teams: List[List[Optional[GamePlayer]]] = [[None] * size for _ in range(TEAM_COUNT)]
    for entry in game.players:
        if 0 <= entry.team_index < TEAM_COUNT and 0 <= entry.slot_index < size:
            teams[entry.team_index][entry.slot_index] = entry
    return teams


def roster_entries(game: Game) -> List[GamePlayer]:
    return [entry for team in team_slots(game) for entry in team if entry is not None]


def find_roster_entry(game: Game, email: str) -> Optional[GamePlayer]:
    for team in team_slots(game):
        for entry in team:
            if entry is not None and entry.email == email:
                return entry
    return None


def is_signed_up(game: Game, email: str) -> bool:
    return find_roster_entry(game, email) is not None


def assign(game: Game, entry: GamePlayer) -> Optional[SlotLocation]:
    """Place ``entry`` in the first empty slot, team 0 before team 1.

    Returns ``None`` when both teams are full; the game is left untouched.
    """
    for team_index, team in enumerate(team_slots(game)):
        for slot_index, occupant in enumerate(team):
            if occupant is None:
                entry.team_index = team_index
                entry.slot_index = slot_index
                game.players.append(entry)
                return team_index, slot_index
    return None


def remove(game: Game, email: str) -> Optional[GamePlayer]:
    entry = find_roster_entry(game, email)
    if entry is None:
        return None
    game.players.remove(entry)
    return entry


def find_waitlist_entry(game: Game, email: str) -> Optional[GameWaitlistEntry]:
    for entry in game.waitlist:
        if entry.email == email:
            return entry
    return None


def is_waitlisted(game: Game, email: str) -> bool:
    return find_waitlist_entry(game, email) is not None


def add_to_waitlist(game: Game, entry: GameWaitlistEntry) -> None:
    game.waitlist.append(entry)


def remove_from_waitlist(game: Game, email: str) -> Optional[GameWaitlistEntry]:
    entry = find_waitlist_entry(game, email)
    if entry is not None:
        game.waitlist.remove(entry)
    return entry
