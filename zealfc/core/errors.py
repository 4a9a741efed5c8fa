"""Error taxonomy shared by the services and the HTTP layer.

Services raise these; ``zealfc.main`` renders them as
``{"detail": ..., "kind": ..., "message": ...}`` with the variant's status code.
"""

from __future__ import annotations

from typing import Any


class LeagueError(Exception):
    kind = "internal"
    status_code = 500

    def __init__(self, detail: str, message: str | None = None, **context: Any) -> None:
        super().__init__(message or detail)
        self.detail = detail
        self.message = message or detail.replace("_", " ").capitalize()
        self.context = context

    def as_dict(self) -> dict[str, str]:
        return {"detail": self.detail, "kind": self.kind, "message": self.message}


class NotFound(LeagueError):
    kind = "not_found"
    status_code = 404


class Conflict(LeagueError):
    kind = "conflict"
    status_code = 409


class InsufficientFunds(LeagueError):
    kind = "insufficient_funds"
    status_code = 400


class Forbidden(LeagueError):
    kind = "forbidden"
    status_code = 403


class InvalidArgument(LeagueError):
    kind = "invalid_argument"
    status_code = 400


class Unauthenticated(LeagueError):
    kind = "unauthenticated"
    status_code = 401


class Internal(LeagueError):
    kind = "internal"
    status_code = 500
