from typing import Any, Optional, Sequence

from sqlmodel import select
from sqlalchemy import and_, case, delete, func

from app.db.repositories.base import BaseRepository

from app.db.models.players import GamePlayer, PlayerRole
from app.db.models.squares import Square, SquareStatus
from app.db.models.users import User

class GamePlayerRepository(BaseRepository[GamePlayer]):
    model = GamePlayer

    def get_membership(self, game_id: int, user_id: int) -> Optional[GamePlayer]:
        stmt = select(GamePlayer).where(GamePlayer.game_id == game_id, GamePlayer.user_id == user_id)
        return self.session.exec(stmt).first()

    def ensure_member(self, game_id: int, user_id: int, *, role: PlayerRole = PlayerRole.PLAYER) -> GamePlayer:
        """Retourne l'entrée du roster, la crée (sans commit) si absente. Le rôle existant n'est jamais modifié."""
        member = self.get_membership(game_id, user_id)
        if member:
            return member
        return self.create(commit=False, game_id=game_id, user_id=user_id, role=role)

    def list_for_game_with_users(self, game_id: int) -> Sequence[Any]:
        """
        Roster de la partie : joueur + nom + compteurs de cases (réservées / confirmées).
        """
        reserved = func.coalesce(func.sum(case((Square.status == SquareStatus.RESERVED, 1), else_=0)), 0)
        confirmed = func.coalesce(func.sum(case((Square.status == SquareStatus.CONFIRMED, 1), else_=0)), 0)
        stmt = (
            select(
                GamePlayer.id,
                GamePlayer.user_id,
                GamePlayer.role,
                GamePlayer.blocked,
                GamePlayer.created_at,
                User.username,
                User.display_name,
                reserved.label("reserved_count"),
                confirmed.label("confirmed_count"),
            )
            .join(User, User.id == GamePlayer.user_id)
            .join(
                Square,
                and_(Square.game_id == GamePlayer.game_id, Square.player_id == GamePlayer.user_id),
                isouter=True,
            )
            .where(GamePlayer.game_id == game_id)
            .group_by(
                GamePlayer.id,
                GamePlayer.user_id,
                GamePlayer.role,
                GamePlayer.blocked,
                GamePlayer.created_at,
                User.username,
                User.display_name,
            )
            .order_by(GamePlayer.created_at.asc())
        )
        return self.session.exec(stmt).all()

    def delete_membership(self, game_id: int, user_id: int) -> int:
        stmt = delete(GamePlayer).where(GamePlayer.game_id == game_id, GamePlayer.user_id == user_id)
        return self.session.exec(stmt).rowcount
