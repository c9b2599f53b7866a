from datetime import datetime
from enum import Enum
from typing import List, Optional

from sqlmodel import Field
from sqlalchemy import Column, JSON

from app.db.models.base import BaseModelDB


class GameStatus(str, Enum):
    DRAFT = "DRAFT"
    OPEN = "OPEN"
    LOCKED = "LOCKED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Statuts dans lesquels les numéros ont déjà été tirés
NUMBERED_STATUSES = (GameStatus.LOCKED, GameStatus.IN_PROGRESS, GameStatus.COMPLETED)


class Game(BaseModelDB, table=True):
    manager_id: int = Field(foreign_key="user.id", index=True)

    name: str = Field(nullable=False)
    # code public utilisé dans les liens d'invitation (/join/{entry_code})
    entry_code: str = Field(index=True, nullable=False, unique=True)

    team_home: str = Field(nullable=False)
    team_away: str = Field(nullable=False)
    game_date: datetime = Field(nullable=False)

    status: GameStatus = Field(default=GameStatus.OPEN, index=True, nullable=False)

    price_per_square: Optional[float] = Field(default=None, ge=0)
    payout_q1: int = Field(default=25, nullable=False)
    payout_q2: int = Field(default=25, nullable=False)
    payout_q3: int = Field(default=25, nullable=False)
    payout_final: int = Field(default=25, nullable=False)

    max_squares_per_player: int = Field(default=10, nullable=False)
    reservation_hours: int = Field(default=24, nullable=False)
    auto_release_enabled: bool = Field(default=True, nullable=False)

    # hash passlib, None = partie ouverte à tous
    access_password: Optional[str] = Field(default=None)

    # vides tant que la partie n'est pas verrouillée, immuables ensuite
    row_numbers: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    col_numbers: List[int] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    locked_at: Optional[datetime] = Field(default=None)

    # renseigné par le hook de facturation (DRAFT -> OPEN)
    paid_at: Optional[datetime] = Field(default=None)
