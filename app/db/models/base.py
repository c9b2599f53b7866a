"""
➡️ But : Colonnes communes à toutes les tables du moteur.

Chaque table (users, games, squares, game players, notification jobs) hérite de
BaseModelDB : clé primaire entière et horodatage de création / mise à jour.
Les dates sont naïves et toujours exprimées en UTC (voir app.utils.time.utcnow).
"""

from sqlmodel import SQLModel, Field
from datetime import datetime
from typing import Optional

from app.utils.time import utcnow

class BaseModelDB(SQLModel, table=False):
    id: Optional[int] = Field(default=None, primary_key=True)
    created_at: datetime = Field(default_factory=utcnow)
    # mis à jour par BaseRepository.update ; les updates conditionnels le posent eux-mêmes
    updated_at: datetime = Field(default_factory=utcnow)
