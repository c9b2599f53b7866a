from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from sqlmodel import select
from sqlalchemy import delete, or_, update

from app.db.repositories.base import BaseRepository

from app.db.models.games import Game, GameStatus
from app.db.models.players import GamePlayer
from app.db.models.squares import Square
from app.utils.time import utcnow

class GameRepository(BaseRepository[Game]):
    model = Game

    def get_by_entry_code(self, entry_code: str) -> Optional[Game]:
        stmt = select(Game).where(Game.entry_code == entry_code)
        return self.session.exec(stmt).first()

    def get_for_update(self, game_id: int) -> Optional[Game]:
        """
        Charge la partie en posant un verrou de ligne (SELECT ... FOR UPDATE).
        Sérialise les réservations/confirmations d'une même partie sur Postgres/MySQL.
        Sans effet sur SQLite : le quota y est revérifié après l'update (voir SquareService._reserve).
        """
        stmt = select(Game).where(Game.id == game_id).with_for_update()
        return self.session.exec(stmt).first()

    def list_for_user(self, user_id: int, offset: int = 0, limit: int = 100) -> Sequence[Game]:
        """Parties gérées par l'utilisateur OU auxquelles il a rejoint."""
        stmt = (
            select(Game)
            .join(GamePlayer, GamePlayer.game_id == Game.id, isouter=True)
            .where(or_(Game.manager_id == user_id, GamePlayer.user_id == user_id))
            .distinct()
            .order_by(Game.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return self.session.exec(stmt).all()

    def list_open_with_auto_release(self) -> Sequence[Game]:
        stmt = (
            select(Game)
            .where(Game.status == GameStatus.OPEN, Game.auto_release_enabled.is_(True))
            .order_by(Game.id.asc())
        )
        return self.session.exec(stmt).all()

    # ---------- transitions atomiques ----------

    def lock_if_open(
        self,
        game_id: int,
        *,
        row_numbers: List[int],
        col_numbers: List[int],
        locked_at: datetime,
    ) -> bool:
        """
        OPEN -> LOCKED + numéros, en une seule mise à jour conditionnelle.
        Retourne False si la partie n'était plus OPEN (aucune ligne modifiée).
        """
        stmt = (
            update(Game)
            .where(Game.id == game_id, Game.status == GameStatus.OPEN)
            .values(
                status=GameStatus.LOCKED,
                row_numbers=row_numbers,
                col_numbers=col_numbers,
                locked_at=locked_at,
                updated_at=locked_at,
            )
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(stmt)
        return result.rowcount == 1

    def transition_status(
        self,
        game_id: int,
        *,
        from_statuses: Iterable[GameStatus],
        to_status: GameStatus,
        **extra,
    ) -> bool:
        stmt = (
            update(Game)
            .where(Game.id == game_id, Game.status.in_(list(from_statuses)))
            .values(status=to_status, updated_at=utcnow(), **extra)
            .execution_options(synchronize_session=False)
        )
        result = self.session.exec(stmt)
        return result.rowcount == 1

    # ---------- suppression ----------

    def delete_with_children(self, game: Game) -> None:
        """Supprime la partie, ses 100 cases et ses joueurs dans la même transaction."""
        self.session.exec(delete(Square).where(Square.game_id == game.id))
        self.session.exec(delete(GamePlayer).where(GamePlayer.game_id == game.id))
        self.session.delete(game)
        self.session.commit()
