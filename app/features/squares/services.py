"""
➡️ But : Réserver et confirmer des cases sans jamais attribuer deux fois la même.

reserve_squares() : tout ou rien. Verrou de ligne sur la partie, puis mise à jour
conditionnelle `status = AVAILABLE` ; si le nombre de lignes modifiées ne correspond
pas à la demande, rollback et CellUnavailable.

confirm_squares() : manager / co-manager, RESERVED -> CONFIRMED (état terminal),
puis un e-mail de confirmation par joueur concerné.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session

from app.core.errors import (
    CellUnavailable,
    GameNotJoinable,
    NotFound,
    PlayerBlocked,
    QuotaExceeded,
    SquaresError,
)
from app.db.models.games import Game, GameStatus
from app.db.models.squares import GRID_SIZE
from app.db.repositories.games import GameRepository
from app.db.repositories.players import GamePlayerRepository
from app.db.repositories.squares import SquareRepository
from app.db.repositories.users import UserRepository
from app.features.games.access import (
    capabilities_for,
    ensure_can_manage,
    ensure_can_view,
    ensure_password_access,
)
from app.features.live.broker import GridChangeBroker, grid_changes
from app.features.notifications.services import NotificationService
from app.security.tokens import JWTSettings
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

Cell = Tuple[int, int]


def square_row_to_dict(r: Any) -> Dict[str, Any]:
    """Ligne de list_for_game_with_occupant -> dict SquareOut."""
    name = None
    if r.player_id is not None:
        name = r.player_display_name or r.player_username
    return {
        "id": r.id,
        "row": r.row,
        "col": r.col,
        "status": r.status,
        "player_id": r.player_id,
        "player_name": name,
        "reserved_at": r.reserved_at,
        "confirmed_at": r.confirmed_at,
    }


def _validate_cells(cells: Sequence[Cell]) -> List[Cell]:
    if not cells:
        raise ValueError("At least one cell is required")
    out: List[Cell] = []
    for row, col in cells:
        if not (0 <= row < GRID_SIZE and 0 <= col < GRID_SIZE):
            raise ValueError(f"Cell ({row}, {col}) is outside the grid")
        out.append((row, col))
    if len(set(out)) != len(out):
        raise ValueError("Duplicate cells in request")
    return out


class SquareService:
    def __init__(
        self,
        session: Session,
        game_repo: GameRepository,
        square_repo: SquareRepository,
        player_repo: GamePlayerRepository,
        user_repo: UserRepository,
        notifications: NotificationService,
        jwt_settings: JWTSettings,
        *,
        now_fn: Callable[[], datetime] = utcnow,
        broker: GridChangeBroker = grid_changes,
    ):
        self.session = session

        self.games = game_repo
        self.squares = square_repo
        self.players = player_repo
        self.users = user_repo
        self.notifications = notifications

        self.jwt = jwt_settings
        self.now_fn = now_fn
        self.broker = broker

    # ---------------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------------

    def grid(self, game_id: int) -> List[Dict[str, Any]]:
        return [square_row_to_dict(r) for r in self.squares.list_for_game_with_occupant(game_id)]

    def list_grid(self, game_id: int, *, user_id: int, game_access_token: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Grille complète (100 cases, ordre ligne puis colonne).
        Partie protégée : lecture réservée au manager, aux inscrits, ou à un jeton d'accès valide.
        """
        game = self.games.get(game_id)
        if not game:
            raise NotFound("GAME_NOT_FOUND")
        caps = capabilities_for(game, user_id, self.players.get_membership(game_id, user_id))
        ensure_password_access(game, caps, game_access_token=game_access_token, jwt_settings=self.jwt)
        return self.grid(game_id)

    # ---------------------------------------------------------------------
    # Reserve
    # ---------------------------------------------------------------------

    def reserve_squares(
        self,
        game_id: int,
        *,
        user_id: int,
        cells: Sequence[Cell],
        game_access_token: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        cells = _validate_cells(cells)
        try:
            self._reserve(game_id, user_id=user_id, cells=cells, game_access_token=game_access_token)
        except SquaresError:
            self.session.rollback()
            raise

        logger.info("User %s reserved %d square(s) in game %s", user_id, len(cells), game_id)
        self.broker.publish(game_id)
        return self.grid(game_id)

    def _reserve(self, game_id: int, *, user_id: int, cells: List[Cell], game_access_token: Optional[str]) -> None:
        # Verrou de ligne : sérialise les réservations concurrentes d'une même partie
        game = self.games.get_for_update(game_id)
        if not game:
            raise NotFound("GAME_NOT_FOUND")
        if game.status != GameStatus.OPEN:
            raise GameNotJoinable(f"Game is {game.status.value}")

        member = self.players.get_membership(game_id, user_id)
        caps = capabilities_for(game, user_id, member)
        ensure_password_access(game, caps, game_access_token=game_access_token, jwt_settings=self.jwt)

        if caps.is_blocked:
            raise PlayerBlocked("You have been blocked from this game")

        held = self.squares.count_held_by_player(game_id, user_id)
        if held + len(cells) > game.max_squares_per_player:
            raise QuotaExceeded(game.max_squares_per_player, held, len(cells))

        taken = self.squares.list_unavailable_cells(game_id, cells)
        if taken:
            raise CellUnavailable(taken)

        now = self.now_fn()
        updated = self.squares.reserve_available(game_id, user_id, cells, now)
        if updated != len(cells):
            # une autre réservation est passée entre la lecture et l'écriture
            self.session.rollback()
            conflicts = self.squares.list_unavailable_cells(game_id, cells)
            logger.warning(
                "Reservation race in game %s: %d/%d rows updated for user %s",
                game_id, updated, len(cells), user_id,
            )
            raise CellUnavailable(conflicts or cells)

        # recompte dans la transaction d'écriture : une réservation concurrente du même
        # joueur a pu passer entre le contrôle de quota et l'update
        cap = game.max_squares_per_player
        held_after = self.squares.count_held_by_player(game_id, user_id)
        if held_after > cap:
            self.session.rollback()
            logger.warning(
                "Quota race in game %s for user %s: %d held after write (max %d)",
                game_id, user_id, held_after, cap,
            )
            raise QuotaExceeded(cap, held_after - len(cells), len(cells))

        self.players.ensure_member(game_id, user_id)
        self.session.commit()

    # ---------------------------------------------------------------------
    # Confirm
    # ---------------------------------------------------------------------

    def confirm_squares(self, game_id: int, *, user_id: int, square_ids: Sequence[int]) -> int:
        """
        RESERVED -> CONFIRMED. Les ids inconnus, d'une autre partie ou déjà confirmés
        sont ignorés et non comptés.
        """
        game = self.games.get_for_update(game_id)
        if not game:
            raise NotFound("GAME_NOT_FOUND")
        try:
            caps = capabilities_for(game, user_id, self.players.get_membership(game_id, user_id))
            ensure_can_manage(game, caps)
        except SquaresError:
            self.session.rollback()
            raise

        ids = list(dict.fromkeys(square_ids))
        candidates = [r.id for r in self.squares.list_reserved_ids_for_players(game_id, ids)]
        now = self.now_fn()
        confirmed = self.squares.confirm_reserved(game_id, candidates, now)

        if confirmed:
            self._queue_confirmations(game, candidates, now)
        self.session.commit()

        if confirmed:
            logger.info("Confirmed %d square(s) in game %s (by user %s)", confirmed, game_id, user_id)
            self.broker.publish(game_id)
        return confirmed

    def _queue_confirmations(self, game: Game, candidate_ids: List[int], confirmed_at: datetime) -> None:
        per_player = Counter(
            r.player_id
            for r in self.squares.list_confirmed_at(candidate_ids, confirmed_at)
            if r.player_id is not None
        )
        players = {u.id: u for u in self.users.list_by_ids(list(per_player))}
        for player_id, count in per_player.items():
            player = players.get(player_id)
            if player:
                self.notifications.enqueue_confirmation(game, player, square_count=count, commit=False)

    # ---------------------------------------------------------------------
    # Live view
    # ---------------------------------------------------------------------

    def ensure_viewer(self, game_id: int, *, user_id: int) -> Game:
        """Le flux live est réservé au manager et aux joueurs inscrits."""
        game = self.games.get(game_id)
        if not game:
            raise NotFound("GAME_NOT_FOUND")
        ensure_can_view(game, capabilities_for(game, user_id, self.players.get_membership(game_id, user_id)))
        return game
