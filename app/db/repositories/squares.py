from datetime import datetime
from typing import Any, List, Sequence, Tuple

from sqlmodel import select
from sqlalchemy import and_, or_, update
from sqlalchemy import func

from app.db.repositories.base import BaseRepository

from app.db.models.squares import GRID_SIZE, Square, SquareStatus
from app.db.models.users import User

Cell = Tuple[int, int]


def _cells_clause(cells: Sequence[Cell]):
    return or_(*[and_(Square.row == r, Square.col == c) for r, c in cells])


class SquareRepository(BaseRepository[Square]):
    model = Square

    def create_grid(self, game_id: int) -> None:
        """Crée les 100 cases (10x10) d'une partie, sans commit (transaction de création)."""
        self.session.add_all(
            [
                Square(game_id=game_id, row=row, col=col)
                for row in range(GRID_SIZE)
                for col in range(GRID_SIZE)
            ]
        )
        self.session.flush()

    # ---------- READ ----------

    def list_for_game_with_occupant(self, game_id: int) -> Sequence[Any]:
        """
        Les 100 cases, ordre ligne puis colonne, avec le nom affiché de l'occupant.
        """
        stmt = (
            select(
                Square.id,
                Square.row,
                Square.col,
                Square.status,
                Square.player_id,
                Square.reserved_at,
                Square.confirmed_at,
                User.username.label("player_username"),
                User.display_name.label("player_display_name"),
            )
            .join(User, User.id == Square.player_id, isouter=True)
            .where(Square.game_id == game_id)
            .order_by(Square.row.asc(), Square.col.asc())
        )
        return self.session.exec(stmt).all()

    def count_for_game(self, game_id: int) -> int:
        stmt = select(func.count(Square.id)).where(Square.game_id == game_id)
        return int(self.session.exec(stmt).one())

    def count_by_status(self, game_id: int, status: SquareStatus) -> int:
        stmt = select(func.count(Square.id)).where(Square.game_id == game_id, Square.status == status)
        return int(self.session.exec(stmt).one())

    def count_held_by_player(self, game_id: int, user_id: int) -> int:
        """Cases RESERVED + CONFIRMED détenues par le joueur."""
        stmt = select(func.count(Square.id)).where(
            Square.game_id == game_id,
            Square.player_id == user_id,
            Square.status != SquareStatus.AVAILABLE,
        )
        return int(self.session.exec(stmt).one())

    def list_unavailable_cells(self, game_id: int, cells: Sequence[Cell]) -> List[Cell]:
        stmt = select(Square.row, Square.col).where(
            Square.game_id == game_id,
            Square.status != SquareStatus.AVAILABLE,
            _cells_clause(cells),
        )
        return [(r, c) for r, c in self.session.exec(stmt).all()]

    def list_reserved_ids_for_players(self, game_id: int, square_ids: Sequence[int]) -> Sequence[Any]:
        stmt = select(Square.id, Square.player_id).where(
            Square.game_id == game_id,
            Square.id.in_(list(square_ids)),
            Square.status == SquareStatus.RESERVED,
        )
        return self.session.exec(stmt).all()

    def list_confirmed_at(self, square_ids: Sequence[int], confirmed_at: datetime) -> Sequence[Any]:
        stmt = select(Square.id, Square.player_id).where(
            Square.id.in_(list(square_ids)),
            Square.status == SquareStatus.CONFIRMED,
            Square.confirmed_at == confirmed_at,
        )
        return self.session.exec(stmt).all()

    def list_reserved_with_player(self, game_id: int) -> Sequence[Any]:
        stmt = (
            select(Square.id, Square.player_id, Square.reserved_at)
            .where(
                Square.game_id == game_id,
                Square.status == SquareStatus.RESERVED,
                Square.player_id.is_not(None),
                Square.reserved_at.is_not(None),
            )
            .order_by(Square.player_id.asc(), Square.reserved_at.asc())
        )
        return self.session.exec(stmt).all()

    # ---------- mises à jour conditionnelles (pas de commit : le service orchestre) ----------

    def reserve_available(self, game_id: int, user_id: int, cells: Sequence[Cell], now: datetime) -> int:
        """
        AVAILABLE -> RESERVED pour les cases demandées qui sont encore libres.
        Retourne le nombre de lignes réellement modifiées.
        """
        stmt = (
            update(Square)
            .where(
                Square.game_id == game_id,
                Square.status == SquareStatus.AVAILABLE,
                _cells_clause(cells),
            )
            .values(
                status=SquareStatus.RESERVED,
                player_id=user_id,
                reserved_at=now,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        return self.session.exec(stmt).rowcount

    def confirm_reserved(self, game_id: int, square_ids: Sequence[int], now: datetime) -> int:
        if not square_ids:
            return 0
        stmt = (
            update(Square)
            .where(
                Square.game_id == game_id,
                Square.id.in_(list(square_ids)),
                Square.status == SquareStatus.RESERVED,
            )
            .values(status=SquareStatus.CONFIRMED, confirmed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.session.exec(stmt).rowcount

    def release_expired(self, game_id: int, cutoff: datetime, now: datetime) -> int:
        stmt = (
            update(Square)
            .where(
                Square.game_id == game_id,
                Square.status == SquareStatus.RESERVED,
                Square.reserved_at < cutoff,
            )
            .values(status=SquareStatus.AVAILABLE, player_id=None, reserved_at=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.session.exec(stmt).rowcount

    def release_player_reservations(self, game_id: int, user_id: int, now: datetime) -> int:
        """Libère les cases RESERVED d'un joueur ; les cases CONFIRMED restent en place."""
        stmt = (
            update(Square)
            .where(
                Square.game_id == game_id,
                Square.player_id == user_id,
                Square.status == SquareStatus.RESERVED,
            )
            .values(status=SquareStatus.AVAILABLE, player_id=None, reserved_at=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        return self.session.exec(stmt).rowcount
