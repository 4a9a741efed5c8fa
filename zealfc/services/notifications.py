from __future__ import annotations

import logging
from dataclasses import dataclass
from html import escape
from typing import Iterable, Protocol

import requests

from zealfc.core.config import Settings
from zealfc.models import Game

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Recipient:
    email: str
    name: str


@dataclass(frozen=True)
class EmailMessage:
    subject: str
    html: str
    text: str


class Notifier(Protocol):
    def send(self, recipient: Recipient, subject: str, html: str, text: str) -> bool: ...


class MailerSendNotifier:
    def __init__(
        self,
        *,
        api_key: str,
        api_url: str,
        from_email: str,
        from_name: str,
        timeout: int = 15,
        session: requests.Session | None = None,
    ) -> None:
        self._api_url = api_url
        self._sender = {"email": from_email, "name": from_name}
        self._timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            }
        )

    def send(self, recipient: Recipient, subject: str, html: str, text: str) -> bool:
        body = {
            "from": self._sender,
            "to": [{"email": recipient.email, "name": recipient.name}],
            "subject": subject,
            "html": html,
            "text": text,
        }
        response = self._session.post(self._api_url, json=body, timeout=self._timeout)
        if 200 <= response.status_code < 300:
            return True
        logger.warning(
            "email_rejected to=%s status=%s body=%s",
            recipient.email,
            response.status_code,
            response.text[:300],
        )
        return False


class LoggingNotifier:
    def send(self, recipient: Recipient, subject: str, html: str, text: str) -> bool:
        logger.info("email_not_sent_no_provider to=%s subject=%s", recipient.email, subject)
        return True


def build_notifier(settings: Settings) -> Notifier:
    if not settings.MAILERSEND_API_KEY:
        return LoggingNotifier()
    return MailerSendNotifier(
        api_key=settings.MAILERSEND_API_KEY,
        api_url=settings.MAILERSEND_API_URL,
        from_email=settings.MAILERSEND_FROM_EMAIL,
        from_name=settings.MAILERSEND_FROM_NAME,
        timeout=settings.HTTP_TIMEOUT_SECONDS,
    )


def notify_safely(notifier: Notifier, recipient: Recipient, message: EmailMessage) -> bool:
    """Send one email; failures are logged and never raised."""
    try:
        ok = notifier.send(recipient, message.subject, message.html, message.text)
    except Exception:
        logger.exception("email_failed to=%s subject=%s", recipient.email, message.subject)
        return False
    if not ok:
        logger.warning("email_not_delivered to=%s subject=%s", recipient.email, message.subject)
    return bool(ok)


def notify_each(
    notifier: Notifier,
    messages: Iterable[tuple[Recipient, EmailMessage]],
) -> int:
    sent = 0
    for recipient, message in messages:
        if notify_safely(notifier, recipient, message):
            sent += 1
    return sent


def _when(game: Game) -> str:
    return f"{game.date.strftime('%d/%m/%Y')} at {game.time}"


def _where(game: Game) -> str:
    return game.stadium_name


def signup_confirmation(first_name: str, game: Game, cost: int, brand: str) -> EmailMessage:
    credit_word = "credit has" if cost == 1 else "credits have"
    return EmailMessage(
        subject="Game Signup Confirmation",
        html=(
            f"<p>Hello {escape(first_name)},</p>"
            f"<p>You have successfully signed up for the game at <strong>{escape(_where(game))}</strong> "
            f"on <strong>{_when(game)}</strong>.</p>"
            f"<p>{cost} {credit_word} been deducted from your account.</p>"
            f"<p>Thank you for joining!</p><p>Best regards,<br>{escape(brand)}</p>"
        ),
        text=(
            f"Hello {first_name},\n\n"
            f"You have successfully signed up for the game at {_where(game)} on {_when(game)}.\n\n"
            f"{cost} {credit_word} been deducted from your account.\n\n"
            f"Thank you for joining!\n\nBest regards,\n{brand}"
        ),
    )


def cancellation_notice(
    first_name: str,
    game: Game,
    refunded: bool,
    brand: str,
    window_hours: int = 48,
) -> EmailMessage:
    refund_text = "Your credit has been refunded." if refunded else (
        f"Cancellations less than {window_hours} hours before kickoff are not refunded."
    )
    refund_html = f"<p>{refund_text}</p>"
    return EmailMessage(
        subject="Game Cancellation",
        html=(
            f"<p>Hello {escape(first_name)},</p>"
            f"<p>You have successfully canceled your registration for the game at "
            f"<strong>{escape(_where(game))}</strong> on <strong>{_when(game)}</strong>.</p>"
            f"{refund_html}<p>Thank you!</p><p>Best regards,<br>{escape(brand)}</p>"
        ),
        text=(
            f"Hello {first_name},\n\n"
            f"You have successfully canceled your registration for the game at {_where(game)} "
            f"on {_when(game)}.\n\n{refund_text}\n\nThank you!\n\nBest regards,\n{brand}"
        ),
    )


def spot_available(first_name: str, game: Game, brand: str) -> EmailMessage:
    return EmailMessage(
        subject="Spot Available for Game",
        html=(
            f"<p>Hello {escape(first_name)},</p>"
            f"<p>A spot has opened up for the game at <strong>{escape(_where(game))}</strong> "
            f"on <strong>{_when(game)}</strong>.</p>"
            f"<p>Sign up quickly if you wish to join!</p><p>Best regards,<br>{escape(brand)}</p>"
        ),
        text=(
            f"Hello {first_name},\n\n"
            f"A spot has opened up for the game at {_where(game)} on {_when(game)}.\n\n"
            f"Sign up quickly if you wish to join!\n\nBest regards,\n{brand}"
        ),
    )


def waitlist_joined(first_name: str, game: Game, brand: str) -> EmailMessage:
    return EmailMessage(
        subject="Waitlist Confirmation for Game",
        html=(
            f"<p>Hello {escape(first_name)},</p>"
            f"<p>You have been added to the waitlist for the game at "
            f"<strong>{escape(_where(game))}</strong> on <strong>{_when(game)}</strong>. "
            f"You will receive an email if a spot becomes available.</p>"
            f"<p>Best regards,<br>{escape(brand)}</p>"
        ),
        text=(
            f"Hello {first_name},\n\n"
            f"You have been added to the waitlist for the game at {_where(game)} on {_when(game)}. "
            f"You will receive an email if a spot becomes available.\n\nBest regards,\n{brand}"
        ),
    )


def waitlist_left(first_name: str, game: Game, brand: str) -> EmailMessage:
    return EmailMessage(
        subject="Removed from Waitlist for Game",
        html=(
            f"<p>Hello {escape(first_name)},</p>"
            f"<p>You have been removed from the waitlist for the game at "
            f"<strong>{escape(_where(game))}</strong> on <strong>{_when(game)}</strong>. "
            f"You will no longer receive notifications about available spots for this game.</p>"
            f"<p>Best regards,<br>{escape(brand)}</p>"
        ),
        text=(
            f"Hello {first_name},\n\n"
            f"You have been removed from the waitlist for the game at {_where(game)} on "
            f"{_when(game)}. You will no longer receive notifications about available spots "
            f"for this game.\n\nBest regards,\n{brand}"
        ),
    )
