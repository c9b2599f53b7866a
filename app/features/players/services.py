import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlmodel import Session

from app.core.errors import AccessDenied, NotFound
from app.db.models.games import Game
from app.db.models.players import PlayerRole
from app.db.repositories.games import GameRepository
from app.db.repositories.players import GamePlayerRepository
from app.db.repositories.squares import SquareRepository
from app.features.games.access import Capabilities, capabilities_for, ensure_can_manage, ensure_manager
from app.features.live.broker import GridChangeBroker, grid_changes
from app.utils.time import utcnow

logger = logging.getLogger(__name__)


class PlayerService:
    """
    Roster d'une partie : rôles, blocage, libération des cases d'un joueur, retrait.
    Le manager lui-même ne peut être ni bloqué ni retiré.
    """
    def __init__(
        self,
        session: Session,
        game_repo: GameRepository,
        player_repo: GamePlayerRepository,
        square_repo: SquareRepository,
        *,
        now_fn: Callable[[], datetime] = utcnow,
        broker: GridChangeBroker = grid_changes,
    ):
        self.session = session
        self.games = game_repo
        self.players = player_repo
        self.squares = square_repo
        self.now_fn = now_fn
        self.broker = broker

    def _load(self, game_id: int, user_id: int) -> Tuple[Game, Capabilities]:
        game = self.games.get(game_id)
        if not game:
            raise NotFound("GAME_NOT_FOUND")
        return game, capabilities_for(game, user_id, self.players.get_membership(game_id, user_id))

    def list_players(self, game_id: int, *, user_id: int) -> List[Dict[str, Any]]:
        game, caps = self._load(game_id, user_id)
        ensure_can_manage(game, caps)
        return [
            {
                "user_id": r.user_id,
                "username": r.username,
                "display_name": r.display_name or r.username,
                "role": r.role,
                "blocked": r.blocked,
                "is_manager": r.user_id == game.manager_id,
                "reserved_count": int(r.reserved_count or 0),
                "confirmed_count": int(r.confirmed_count or 0),
                "joined_at": r.created_at,
            }
            for r in self.players.list_for_game_with_users(game_id)
        ]

    def update_player(
        self,
        game_id: int,
        target_user_id: int,
        *,
        user_id: int,
        action: str,
        role: Optional[PlayerRole] = None,
    ) -> Dict[str, Any]:
        game, caps = self._load(game_id, user_id)
        if action == "set_role":
            ensure_manager(game, caps)
        else:
            ensure_can_manage(game, caps)

        member = self.players.get_membership(game_id, target_user_id)
        if not member:
            raise NotFound("PLAYER_NOT_FOUND")
        if target_user_id == game.manager_id and action in ("set_role", "block"):
            raise AccessDenied("The game manager cannot be changed or blocked")

        out: Dict[str, Any] = {"user_id": target_user_id, "released_squares": 0}

        if action == "set_role":
            member = self.players.update(member, role=role)
            out["role"] = member.role
        elif action in ("block", "unblock"):
            member = self.players.update(member, blocked=(action == "block"))
            out["blocked"] = member.blocked
            logger.info("User %s %sed in game %s by %s", target_user_id, action, game_id, user_id)
        elif action == "release_squares":
            released = self.squares.release_player_reservations(game_id, target_user_id, self.now_fn())
            self.session.commit()
            out["released_squares"] = released
            if released:
                logger.info("Released %d square(s) of user %s in game %s", released, target_user_id, game_id)
                self.broker.publish(game_id)
        else:
            raise ValueError(f"Unknown action {action!r}")

        return out

    def remove_player(self, game_id: int, target_user_id: int, *, user_id: int) -> int:
        """
        Retire le joueur du roster et libère ses cases RESERVED (les cases CONFIRMED restent).
        Retourne le nombre de cases libérées.
        """
        game, caps = self._load(game_id, user_id)
        ensure_can_manage(game, caps)
        if target_user_id == game.manager_id:
            raise AccessDenied("The game manager cannot be removed")

        released = self.squares.release_player_reservations(game_id, target_user_id, self.now_fn())
        deleted = self.players.delete_membership(game_id, target_user_id)
        if not deleted:
            self.session.rollback()
            raise NotFound("PLAYER_NOT_FOUND")
        self.session.commit()

        logger.info("User %s removed from game %s (%d square(s) released)", target_user_id, game_id, released)
        self.broker.publish(game_id)
        return released
