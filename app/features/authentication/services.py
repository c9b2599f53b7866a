"""
➡️ But : Comptes et identité.

Le moteur de grilles ne fait que consommer l'identité : chaque route protégée
résout le bearer token en utilisateur via `resolve_user`. Les erreurs sont des
HTTPException directes (401 / 404 / 409), le reste du domaine passe par SquaresError.
"""

import logging

from fastapi import HTTPException, status
from jose import JWTError

from app.db.models.users import User
from app.db.repositories.users import UserRepository
from app.security.password import verify_password, hash_password
from app.security.tokens import JWTSettings, create_access_token, decode_token
from app.features.authentication.schemas import SignUpIn, SignInIn, TokenOut

logger = logging.getLogger(__name__)

def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )

class AuthService:
    def __init__(self, *, user_repo: UserRepository, jwt_settings: JWTSettings):
        self.user_repo = user_repo
        self.jwt = jwt_settings

    def sign_up(self, payload: SignUpIn) -> User:
        username = payload.username.strip().lower()
        if self.user_repo.get_by_username(username):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Username already exists")
        email = payload.email.lower() if payload.email else None
        if email and self.user_repo.get_by_email(email):
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

        user = self.user_repo.create(
            username=username,
            display_name=payload.display_name.strip(),
            email=email,
            hashed_password=hash_password(payload.password),
        )
        logger.info("User %s signed up (id=%s)", user.username, user.id)
        return user

    def sign_in(self, payload: SignInIn) -> TokenOut:
        user = self.user_repo.get_by_username(payload.username.strip().lower())
        # même réponse que l'utilisateur existe ou non
        if not user or not verify_password(payload.password, user.hashed_password):
            raise _unauthorized("Invalid credentials")
        return self.issue_token(user)

    def issue_token(self, user: User) -> TokenOut:
        return TokenOut(
            access_token=create_access_token(user_id=user.id, username=user.username, settings=self.jwt),
            token_type="bearer",
            expires_in=int(self.jwt.access_ttl.total_seconds()),
        )

    def resolve_user_id(self, access_token: str) -> int:
        """Valide un access token (signature, expiration, type) et renvoie l'id utilisateur."""
        try:
            decoded = decode_token(access_token, self.jwt)
        except JWTError:
            raise _unauthorized("Invalid token")
        if decoded.get("typ") != "access":
            raise _unauthorized("Invalid token type")
        return int(decoded["sub"])

    def resolve_user(self, access_token: str) -> User:
        user = self.user_repo.get(self.resolve_user_id(access_token))
        if not user:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        return user
