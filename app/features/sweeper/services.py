"""
➡️ But : Libérer les réservations expirées et prévenir les joueurs avant l'échéance.

release_expired(now) : pour chaque partie OPEN avec auto-release, les cases RESERVED
dont reserved_at < now - reservation_hours redeviennent AVAILABLE. Idempotent.

queue_reminders(now) : un rappel par (joueur, partie) quand il reste entre 4 et 6 heures
(arrondi supérieur) avant la libération.

Une erreur sur une partie est journalisée et n'interrompt pas le passage.
"""

import logging
import math
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session

from app.core.config import settings
from app.db.repositories.games import GameRepository
from app.db.repositories.squares import SquareRepository
from app.db.repositories.users import UserRepository
from app.features.live.broker import GridChangeBroker, grid_changes
from app.features.notifications.services import NotificationService
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


class ExpirySweeper:
    def __init__(
        self,
        session: Session,
        game_repo: GameRepository,
        square_repo: SquareRepository,
        user_repo: UserRepository,
        notifications: NotificationService,
        *,
        now_fn: Callable[[], datetime] = utcnow,
        broker: GridChangeBroker = grid_changes,
        reminder_min_hours: int = settings.REMINDER_MIN_HOURS,
        reminder_max_hours: int = settings.REMINDER_MAX_HOURS,
    ):
        self.session = session
        self.games = game_repo
        self.squares = square_repo
        self.users = user_repo
        self.notifications = notifications
        self.now_fn = now_fn
        self.broker = broker
        self.reminder_min_hours = reminder_min_hours
        self.reminder_max_hours = reminder_max_hours

    # ---------------------------------------------------------------------
    # Release
    # ---------------------------------------------------------------------

    def release_expired(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or self.now_fn()
        games = self.games.list_open_with_auto_release()

        released_total = 0
        failed = 0
        for game in games:
            game_id = game.id
            cutoff = now - timedelta(hours=game.reservation_hours)
            try:
                released = self.squares.release_expired(game_id, cutoff, now)
                self.session.commit()
            except SQLAlchemyError:
                self.session.rollback()
                logger.exception("Failed to release expired squares for game %s", game_id)
                failed += 1
                continue

            if released:
                logger.info("Released %d expired square(s) in game %s", released, game_id)
                self.broker.publish(game_id)
            released_total += released

        return {
            "released_count": released_total,
            "games_checked": len(games),
            "games_failed": failed,
        }

    # ---------------------------------------------------------------------
    # Reminders
    # ---------------------------------------------------------------------

    def hours_remaining(self, reserved_at: datetime, reservation_hours: int, now: datetime) -> int:
        expires_at = reserved_at + timedelta(hours=reservation_hours)
        return math.ceil((expires_at - now).total_seconds() / 3600)

    def queue_reminders(self, now: Optional[datetime] = None) -> Dict[str, int]:
        now = now or self.now_fn()
        games = self.games.list_open_with_auto_release()

        queued = 0
        for game in games:
            game_id = game.id
            try:
                queued += self._queue_for_game(game, now)
                self.session.commit()
            except SQLAlchemyError:
                self.session.rollback()
                logger.exception("Failed to queue reminders for game %s", game_id)

        if queued:
            logger.info("Queued %d payment reminder(s)", queued)
        return {"reminders_queued": queued, "games_checked": len(games)}

    def _queue_for_game(self, game, now: datetime) -> int:
        # joueur -> (nb de cases dans la fenêtre, heures restantes minimales)
        eligible: Dict[int, list] = defaultdict(lambda: [0, None])
        for r in self.squares.list_reserved_with_player(game.id):
            remaining = self.hours_remaining(r.reserved_at, game.reservation_hours, now)
            if self.reminder_min_hours <= remaining <= self.reminder_max_hours:
                entry = eligible[r.player_id]
                entry[0] += 1
                entry[1] = remaining if entry[1] is None else min(entry[1], remaining)

        if not eligible:
            return 0

        players = {u.id: u for u in self.users.list_by_ids(list(eligible))}
        queued = 0
        for player_id, (count, remaining) in eligible.items():
            player = players.get(player_id)
            if not player:
                continue
            job = self.notifications.enqueue_reminder(
                game,
                player,
                square_count=count,
                hours_remaining=remaining,
                commit=False,
            )
            if job:
                queued += 1
        return queued
