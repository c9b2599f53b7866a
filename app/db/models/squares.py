from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field
from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint

from app.db.models.base import BaseModelDB

GRID_SIZE = 10


class SquareStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    RESERVED = "RESERVED"
    CONFIRMED = "CONFIRMED"


class Square(BaseModelDB, table=True):
    __table_args__ = (
        UniqueConstraint("game_id", "row", "col", name="uq_squares_game_cell"),
    )

    game_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("game.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )

    row: int = Field(nullable=False, ge=0, lt=GRID_SIZE)
    col: int = Field(nullable=False, ge=0, lt=GRID_SIZE)

    status: SquareStatus = Field(default=SquareStatus.AVAILABLE, index=True, nullable=False)

    # occupant : null si la case est libre
    player_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)

    reserved_at: Optional[datetime] = Field(default=None)
    # jamais remis à null : la confirmation est terminale
    confirmed_at: Optional[datetime] = Field(default=None)
