from typing import Optional
from sqlmodel import SQLModel

class UserOut(SQLModel):
    """Profil public d'un compte (le hash du mot de passe n'est jamais exposé)."""
    id: int
    username: str
    display_name: str
    email: Optional[str] = None
    admin: bool
