from enum import Enum

from sqlmodel import Field
from sqlalchemy import Column, ForeignKey, Integer, UniqueConstraint

from app.db.models.base import BaseModelDB


class PlayerRole(str, Enum):
    PLAYER = "PLAYER"
    CO_MANAGER = "CO_MANAGER"


class GamePlayer(BaseModelDB, table=True):
    __tablename__ = "game_player"
    __table_args__ = (
        UniqueConstraint("game_id", "user_id", name="uq_game_players_game_user"),
    )

    game_id: int = Field(
        sa_column=Column(
            Integer,
            ForeignKey("game.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    user_id: int = Field(foreign_key="user.id", index=True)

    role: PlayerRole = Field(default=PlayerRole.PLAYER, nullable=False)
    blocked: bool = Field(default=False, nullable=False)
