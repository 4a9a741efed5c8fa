from zealfc.models.tables import (
    ActionLog,
    Admin,
    CreditLot,
    Game,
    GamePlayer,
    GameWaitlistEntry,
    Stadium,
    User,
    UserGame,
)

__all__ = [
    "ActionLog",
    "Admin",
    "CreditLot",
    "Game",
    "GamePlayer",
    "GameWaitlistEntry",
    "Stadium",
    "User",
    "UserGame",
]
