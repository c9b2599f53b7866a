from typing import Optional
from pydantic import BaseModel, EmailStr, Field

# ---------- Inputs ----------

class SignUpIn(BaseModel):
    username: str = Field(min_length=3, max_length=64)
    password: str = Field(min_length=8, max_length=128)
    display_name: str = Field(default="", max_length=80)
    # requis pour recevoir invitations, rappels et confirmations
    email: Optional[EmailStr] = None

class SignInIn(BaseModel):
    username: str
    password: str


# ---------- Outputs ----------

class TokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # secondes (durée de l'access token)
