"""
Capacités d'un viewer sur une partie : {is_manager, is_co_manager, is_blocked}.

Calculées à partir de la relation GamePlayer plutôt que par une hiérarchie de rôles.
"""

from dataclasses import dataclass
from typing import Optional

from app.core.errors import AccessDenied, NotManager
from app.db.models.games import Game
from app.db.models.players import GamePlayer, PlayerRole
from app.security.tokens import JWTSettings, is_game_access_token_valid


@dataclass(frozen=True)
class Capabilities:
    user_id: int
    is_manager: bool
    is_co_manager: bool
    is_member: bool
    is_blocked: bool

    @property
    def can_manage(self) -> bool:
        return self.is_manager or self.is_co_manager

    @property
    def can_view(self) -> bool:
        return self.is_manager or self.is_member


def capabilities_for(game: Game, user_id: int, member: Optional[GamePlayer]) -> Capabilities:
    return Capabilities(
        user_id=user_id,
        is_manager=game.manager_id == user_id,
        is_co_manager=bool(member and member.role == PlayerRole.CO_MANAGER),
        is_member=member is not None,
        is_blocked=bool(member and member.blocked),
    )


def ensure_manager(game: Game, caps: Capabilities) -> None:
    if not caps.is_manager:
        raise NotManager("Only the game manager can do this")


def ensure_can_manage(game: Game, caps: Capabilities) -> None:
    if not caps.can_manage:
        raise NotManager("Only the game manager or a co-manager can do this")


def ensure_can_view(game: Game, caps: Capabilities) -> None:
    if not caps.can_view:
        raise AccessDenied("Join the game to follow it")


def ensure_password_access(
    game: Game,
    caps: Capabilities,
    *,
    game_access_token: Optional[str],
    jwt_settings: JWTSettings,
) -> None:
    """
    Partie protégée : le manager et les joueurs déjà inscrits passent,
    les autres doivent présenter un jeton d'accès signé pour CETTE partie.
    """
    if not game.access_password or caps.can_view:
        return
    if game_access_token and is_game_access_token_valid(
        game_access_token,
        user_id=caps.user_id,
        game_id=game.id,
        settings=jwt_settings,
    ):
        return
    raise AccessDenied("This game is password protected")
