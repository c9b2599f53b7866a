from typing import Iterable, Optional, Sequence
from sqlmodel import select

from app.db.repositories.base import BaseRepository
from app.db.models.users import User

class UserRepository(BaseRepository[User]):
    """Comptes : recherche par identifiant de connexion et résolution en lot des occupants de la grille."""
    model = User

    def get_by_username(self, username: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.username == username)).first()

    def get_by_email(self, email: str) -> Optional[User]:
        return self.session.exec(select(User).where(User.email == email)).first()

    def list_by_ids(self, user_ids: Iterable[int]) -> Sequence[User]:
        ids = list(set(user_ids))
        if not ids:
            return []
        return self.session.exec(select(User).where(User.id.in_(ids))).all()
