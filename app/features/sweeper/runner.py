"""
Exécution du sweeper hors requête HTTP : script CLI et boucle in-process.
"""

import asyncio
import logging
from typing import Any, Callable, Dict

from fastapi.concurrency import run_in_threadpool
from sqlmodel import Session

from app.core.config import settings
from app.db.repositories.games import GameRepository
from app.db.repositories.jobs import NotificationJobRepository
from app.db.repositories.squares import SquareRepository
from app.db.repositories.users import UserRepository
from app.features.notifications.senders import EmailSender, build_email_sender
from app.features.notifications.services import JobProcessor, NotificationService
from app.features.sweeper.services import ExpirySweeper

logger = logging.getLogger(__name__)


def build_sweeper(session: Session) -> ExpirySweeper:
    return ExpirySweeper(
        session=session,
        game_repo=GameRepository(session),
        square_repo=SquareRepository(session),
        user_repo=UserRepository(session),
        notifications=NotificationService(job_repo=NotificationJobRepository(session)),
    )


def run_sweep(session: Session, *, sender: EmailSender = None) -> Dict[str, Any]:
    """Libération des expirées, puis rappels, puis envoi de la file."""
    sweeper = build_sweeper(session)
    released = sweeper.release_expired()
    reminders = sweeper.queue_reminders()
    jobs = JobProcessor(
        job_repo=NotificationJobRepository(session),
        sender=sender or build_email_sender(settings),
    ).process_pending()
    return {**released, **reminders, "jobs": jobs}


async def sweeper_loop(session_factory: Callable[[], Session], interval: float) -> None:
    """Boucle de fond (SWEEPER_INTERVAL_SECONDS > 0) ; annulée à l'arrêt de l'app."""
    logger.info("In-process sweeper started (every %ss)", interval)
    while True:
        await asyncio.sleep(interval)
        try:
            stats = await run_in_threadpool(_run_once, session_factory)
        except Exception:
            # la boucle survit à un passage raté ; le suivant réessaie
            logger.exception("Sweeper pass failed")
            continue
        logger.debug("Sweeper pass: %s", stats)


def _run_once(session_factory: Callable[[], Session]) -> Dict[str, Any]:
    with session_factory() as session:
        return run_sweep(session)
