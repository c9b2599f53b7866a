"""
➡️ But : Définir la structure des tables de la base (ORM).

Représente les comptes utilisateurs (managers et joueurs).
L'identité est fournie au moteur par le token d'accès ; le moteur lui fait confiance.
"""

from typing import Optional
from sqlmodel import Field

from .base import BaseModelDB

class User(BaseModelDB, table=True):
    username: str = Field(index=True, unique=True)
    display_name: str = Field(default="", description="Nom affiché sur la grille")
    email: Optional[str] = Field(default=None, index=True)
    hashed_password: str
    admin: bool = Field(default=False)

    @property
    def public_name(self) -> str:
        return self.display_name or self.username
