from datetime import datetime
from typing import Literal, Optional
from pydantic import BaseModel, model_validator

from app.db.models.players import PlayerRole


class PlayerOut(BaseModel):
    user_id: int
    username: str
    display_name: str
    role: PlayerRole
    blocked: bool
    is_manager: bool
    reserved_count: int
    confirmed_count: int
    joined_at: datetime


class PlayerUpdateIn(BaseModel):
    """
    PATCH /games/{id}/players/{user_id} :
    - set_role : nécessite `role`
    - block / unblock
    - release_squares : libère les cases RESERVED du joueur
    """
    action: Literal["set_role", "block", "unblock", "release_squares"]
    role: Optional[PlayerRole] = None

    @model_validator(mode="after")
    def role_required_for_set_role(self):
        if self.action == "set_role" and self.role is None:
            raise ValueError("role is required for set_role")
        return self


class PlayerUpdateOut(BaseModel):
    user_id: int
    role: Optional[PlayerRole] = None
    blocked: Optional[bool] = None
    released_squares: int = 0
