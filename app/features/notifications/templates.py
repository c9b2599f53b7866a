from typing import Any, Dict

from app.db.models.jobs import JobType
from app.features.notifications.senders import OutgoingEmail

DISCLAIMER = (
    "This platform is a game management tool only. We do not facilitate gambling. "
    "Users are responsible for compliance with local laws."
)


def _invite(p: Dict[str, Any]) -> OutgoingEmail:
    return OutgoingEmail(
        to=p["email"],
        subject=f"You're invited to {p['game_name']}!",
        body=(
            f"{p['manager_name']} has invited you to join their Football Squares game "
            f"\"{p['game_name']}\".\n\n"
            f"Pick your squares here: {p['join_url']}\n\n{DISCLAIMER}\n"
        ),
    )


def _reminder(p: Dict[str, Any]) -> OutgoingEmail:
    return OutgoingEmail(
        to=p["email"],
        subject=f"Payment Reminder: {p['game_name']}",
        body=(
            f"Hi {p['player_name']},\n\n"
            f"You have {p['square_count']} reserved square(s) in \"{p['game_name']}\" awaiting payment. "
            f"They will be released in about {p['hours_remaining']} hour(s) if payment is not confirmed.\n\n"
            f"Game: {p['game_url']}\n\n{DISCLAIMER}\n"
        ),
    )


def _confirmation(p: Dict[str, Any]) -> OutgoingEmail:
    return OutgoingEmail(
        to=p["email"],
        subject=f"Payment Confirmed: {p['game_name']}",
        body=(
            f"Hi {p['player_name']},\n\n"
            f"The manager confirmed your payment for {p['square_count']} square(s) in \"{p['game_name']}\".\n\n"
            f"Game: {p['game_url']}\n\n{DISCLAIMER}\n"
        ),
    )


_RENDERERS = {
    JobType.SEND_INVITE_EMAIL: _invite,
    JobType.SEND_REMINDER_EMAIL: _reminder,
    JobType.SEND_CONFIRMATION_EMAIL: _confirmation,
}


def render_job_email(job_type: JobType, payload: Dict[str, Any]) -> OutgoingEmail:
    """Lève KeyError si le payload est incomplet (le job sera marqué en échec)."""
    return _RENDERERS[JobType(job_type)](payload)
