"""
➡️ But : Décider QUAND un événement de notification part (invitation, rappel de paiement, paiement confirmé),
puis livrer la file via un EmailSender.

NotificationService : pose des jobs dans la table notification_job (aucun envoi direct).

JobProcessor : consomme les jobs PENDING, 3 tentatives max, un échec n'interrompt pas le lot.
"""

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from app.core.config import settings
from app.db.models.games import Game
from app.db.models.jobs import JobType, NotificationJob
from app.db.models.users import User
from app.db.repositories.jobs import NotificationJobRepository
from app.features.notifications.senders import EmailSender
from app.features.notifications.templates import render_job_email
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


def reminder_dedupe_key(game_id: int, user_id: int) -> str:
    return f"reminder:{game_id}:{user_id}"


class NotificationService:
    def __init__(
        self,
        *,
        job_repo: NotificationJobRepository,
        app_url: str = settings.APP_URL,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.jobs = job_repo
        self.app_url = app_url.rstrip("/")
        self.now_fn = now_fn

    def _game_url(self, game: Game) -> str:
        return f"{self.app_url}/games/{game.id}"

    def _enqueue(
        self,
        job_type: JobType,
        payload: Dict[str, Any],
        *,
        user_id: Optional[int] = None,
        dedupe_key: Optional[str] = None,
        commit: bool = True,
    ) -> NotificationJob:
        return self.jobs.create(
            commit=commit,
            type=job_type,
            payload=payload,
            user_id=user_id,
            dedupe_key=dedupe_key,
            run_at=self.now_fn(),
        )

    # ---------- événements ----------

    def enqueue_invite(self, game: Game, *, email: str, manager_name: str, commit: bool = True) -> NotificationJob:
        return self._enqueue(
            JobType.SEND_INVITE_EMAIL,
            {
                "game_id": game.id,
                "game_name": game.name,
                "manager_name": manager_name,
                "email": email,
                "join_url": f"{self.app_url}/join/{game.entry_code}",
            },
            commit=commit,
        )

    def enqueue_reminder(
        self,
        game: Game,
        player: User,
        *,
        square_count: int,
        hours_remaining: int,
        commit: bool = True,
    ) -> Optional[NotificationJob]:
        """Un seul rappel par (joueur, partie) : retourne None si déjà posé ou sans e-mail."""
        if not player.email:
            logger.debug("Player %s has no e-mail, reminder skipped", player.id)
            return None
        key = reminder_dedupe_key(game.id, player.id)
        if self.jobs.get_by_dedupe_key(key):
            return None
        return self._enqueue(
            JobType.SEND_REMINDER_EMAIL,
            {
                "game_id": game.id,
                "game_name": game.name,
                "game_url": self._game_url(game),
                "player_name": player.public_name,
                "email": player.email,
                "square_count": square_count,
                "hours_remaining": hours_remaining,
            },
            user_id=player.id,
            dedupe_key=key,
            commit=commit,
        )

    def enqueue_confirmation(
        self,
        game: Game,
        player: User,
        *,
        square_count: int,
        commit: bool = True,
    ) -> Optional[NotificationJob]:
        if not player.email:
            return None
        return self._enqueue(
            JobType.SEND_CONFIRMATION_EMAIL,
            {
                "game_id": game.id,
                "game_name": game.name,
                "game_url": self._game_url(game),
                "player_name": player.public_name,
                "email": player.email,
                "square_count": square_count,
            },
            user_id=player.id,
            commit=commit,
        )


class JobProcessor:
    def __init__(
        self,
        *,
        job_repo: NotificationJobRepository,
        sender: EmailSender,
        batch_size: int = settings.JOBS_BATCH_SIZE,
        now_fn: Callable[[], datetime] = utcnow,
    ):
        self.jobs = job_repo
        self.sender = sender
        self.batch_size = batch_size
        self.now_fn = now_fn

    def process_pending(self) -> Dict[str, int]:
        jobs = self.jobs.list_pending(self.now_fn(), limit=self.batch_size)
        processed = 0
        failed = 0

        for job in jobs:
            job = self.jobs.mark_processing(job)
            try:
                email = render_job_email(job.type, job.payload)
                self.sender.send(email)
            except Exception as e:
                # un destinataire en échec ne bloque pas les autres
                logger.exception("Notification job %s (%s) failed", job.id, job.type)
                self.jobs.mark_failed(job, f"{type(e).__name__}: {e}")
                failed += 1
                continue
            self.jobs.mark_completed(job, self.now_fn())
            processed += 1

        if jobs:
            logger.info("Processed %d notification job(s), %d failed", processed, failed)
        return {"processed": processed, "failed": failed}
