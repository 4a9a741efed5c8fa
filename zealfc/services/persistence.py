from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from zealfc.core.errors import Conflict, Internal

logger = logging.getLogger(__name__)


def _rollback(db: Session, *, game_id: Optional[int], user_id: Optional[int], step: str) -> None:
    try:
        db.rollback()
    except SQLAlchemyError:
        logger.exception(
            "rollback_failed game_id=%s user_id=%s step=%s", game_id, user_id, step
        )
        raise Internal(
            "rollback_failed",
            "The change could not be undone; manual reconciliation is required.",
            game_id=game_id,
            user_id=user_id,
            step=step,
        )


def write_game_side(db: Session, *, game_id: Optional[int], user_id: Optional[int], step: str) -> None:
    """Flush the roster change first; the roster decides whether a user is signed up."""
    try:
        db.flush()
    except (StaleDataError, IntegrityError) as exc:
        _rollback(db, game_id=game_id, user_id=user_id, step=step)
        logger.warning(
            "roster_write_conflict game_id=%s user_id=%s step=%s detail=%s",
            game_id,
            user_id,
            step,
            exc,
        )
        raise Conflict(
            "game_modified_concurrently",
            "The game changed while this request was processed. Please retry.",
        ) from exc
    except SQLAlchemyError as exc:
        _rollback(db, game_id=game_id, user_id=user_id, step=step)
        logger.error(
            "game_write_failed game_id=%s user_id=%s step=%s detail=%s",
            game_id,
            user_id,
            step,
            exc,
        )
        raise Internal("game_write_failed", game_id=game_id, user_id=user_id, step=step) from exc


def commit_workflow(db: Session, *, game_id: Optional[int], user_id: Optional[int], step: str) -> None:
    """Commit the user side after the roster flush; failures are surfaced, never swallowed."""
    try:
        db.commit()
    except (StaleDataError, IntegrityError) as exc:
        _rollback(db, game_id=game_id, user_id=user_id, step=step)
        logger.warning(
            "workflow_commit_conflict game_id=%s user_id=%s step=%s detail=%s",
            game_id,
            user_id,
            step,
            exc,
        )
        raise Conflict(
            "concurrent_update",
            "Another request changed this data at the same time. Please retry.",
        ) from exc
    except SQLAlchemyError as exc:
        _rollback(db, game_id=game_id, user_id=user_id, step=step)
        logger.error(
            "user_write_failed_after_game_write game_id=%s user_id=%s step=%s detail=%s",
            game_id,
            user_id,
            step,
            exc,
        )
        raise Internal(
            "user_write_failed",
            "The roster change could not be saved together with the account update.",
            game_id=game_id,
            user_id=user_id,
            step=step,
        ) from exc
