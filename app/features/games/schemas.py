from datetime import datetime
from typing import List, Literal, Optional
from pydantic import BaseModel, EmailStr, Field, model_validator

from app.db.models.games import GameStatus
from app.db.models.players import PlayerRole


# -----------------------------
# Game creation
# -----------------------------

class PayoutsMixin(BaseModel):
    payout_q1: int = Field(25, ge=0, le=100)
    payout_q2: int = Field(25, ge=0, le=100)
    payout_q3: int = Field(25, ge=0, le=100)
    payout_final: int = Field(25, ge=0, le=100)


class GameCreateIn(PayoutsMixin):
    name: str = Field(min_length=3, max_length=120, examples=["Super Bowl LX"])
    team_home: str = Field(min_length=1, max_length=80)
    team_away: str = Field(min_length=1, max_length=80)
    game_date: datetime

    price_per_square: Optional[float] = Field(default=None, ge=0)
    max_squares_per_player: int = Field(10, ge=1, le=100)
    reservation_hours: int = Field(24, ge=1, le=168)
    auto_release_enabled: bool = True

    # optionnel : protège la partie dès sa création
    access_password: Optional[str] = Field(default=None, min_length=4, max_length=128)

    @model_validator(mode="after")
    def payouts_must_total_100(self):
        total = self.payout_q1 + self.payout_q2 + self.payout_q3 + self.payout_final
        if total != 100:
            raise ValueError("Payouts must total 100%")
        return self


# seul le prix peut être effacé (null) ; les autres colonnes sont obligatoires
NULLABLE_SETTINGS = frozenset({"price_per_square"})


class GameUpdateIn(BaseModel):
    """
    PATCH /games/{id} :
    - soit des réglages (tous optionnels),
    - soit une action de cycle de vie (lock, start, complete, cancel).
    """
    action: Optional[Literal["lock", "start", "complete", "cancel"]] = None

    name: Optional[str] = Field(default=None, min_length=3, max_length=120)
    team_home: Optional[str] = Field(default=None, min_length=1, max_length=80)
    team_away: Optional[str] = Field(default=None, min_length=1, max_length=80)
    game_date: Optional[datetime] = None
    price_per_square: Optional[float] = Field(default=None, ge=0)
    max_squares_per_player: Optional[int] = Field(default=None, ge=1, le=100)
    reservation_hours: Optional[int] = Field(default=None, ge=1, le=168)
    auto_release_enabled: Optional[bool] = None
    payout_q1: Optional[int] = Field(default=None, ge=0, le=100)
    payout_q2: Optional[int] = Field(default=None, ge=0, le=100)
    payout_q3: Optional[int] = Field(default=None, ge=0, le=100)
    payout_final: Optional[int] = Field(default=None, ge=0, le=100)

    @model_validator(mode="after")
    def reject_explicit_nulls(self):
        cleared = sorted(
            name for name in self.model_fields_set
            if name != "action" and name not in NULLABLE_SETTINGS and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"These settings cannot be null: {', '.join(cleared)}")
        return self

    def settings_changes(self) -> dict:
        return self.model_dump(exclude_unset=True, exclude={"action"})


# -----------------------------
# Outputs
# -----------------------------

class GameOut(BaseModel):
    id: int
    name: str
    entry_code: str
    team_home: str
    team_away: str
    game_date: datetime
    status: GameStatus
    price_per_square: Optional[float] = None
    payout_q1: int
    payout_q2: int
    payout_q3: int
    payout_final: int
    max_squares_per_player: int
    reservation_hours: int
    auto_release_enabled: bool
    password_protected: bool
    row_numbers: List[int]
    col_numbers: List[int]
    locked_at: Optional[datetime] = None
    manager_id: int
    created_at: datetime


class GameSummaryOut(BaseModel):
    """Vue publique (page /join/{entry_code})."""
    id: int
    name: str
    entry_code: str
    team_home: str
    team_away: str
    game_date: datetime
    status: GameStatus
    price_per_square: Optional[float] = None
    max_squares_per_player: int
    password_protected: bool
    available_squares: int


class LockOut(BaseModel):
    game_id: int
    status: GameStatus
    row_numbers: List[int]
    col_numbers: List[int]
    locked_at: datetime
    # le verrouillage d'une grille incomplète est autorisé ; le front affiche un avertissement
    unfilled_squares: int


# -----------------------------
# Password / access
# -----------------------------

class GamePasswordIn(BaseModel):
    enabled: bool
    password: Optional[str] = Field(default=None, max_length=128)

    @model_validator(mode="after")
    def password_required_when_enabled(self):
        if self.enabled and (not self.password or len(self.password) < 4):
            raise ValueError("Password must be at least 4 characters")
        return self


class GameAccessIn(BaseModel):
    password: Optional[str] = None


class GameAccessStatusOut(BaseModel):
    password_required: bool
    has_access: bool


class GameAccessTokenOut(BaseModel):
    access_token: str
    expires_in: int  # secondes


# -----------------------------
# Invitations
# -----------------------------

class InviteIn(BaseModel):
    emails: List[EmailStr] = Field(min_length=1, max_length=100)


class InviteOut(BaseModel):
    queued: int


# -----------------------------
# Join
# -----------------------------

class JoinOut(BaseModel):
    game_id: int
    user_id: int
    role: PlayerRole
    blocked: bool
