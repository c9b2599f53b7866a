"""
➡️ But : Jetons JWT signés (python-jose).

Deux familles de jetons partagent la même clé et le même émetteur :
- "access" : identité de l'utilisateur (Authorization: Bearer),
- "game_access" : preuve qu'un utilisateur a saisi le mot de passe d'une partie
  protégée (header X-Game-Access), valable pour ce couple (partie, utilisateur) seulement.
"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, TypedDict

from jose import jwt, JWTError

ACCESS = "access"
GAME_ACCESS = "game_access"


@dataclass(frozen=True)
class JWTSettings:
    secret: str
    issuer: str = "football-squares"
    algorithm: str = "HS256"
    access_ttl: timedelta = timedelta(hours=24)
    game_access_ttl: timedelta = timedelta(hours=12)


class DecodedToken(TypedDict, total=False):
    iss: str
    sub: str            # id utilisateur
    username: str
    gid: int            # id de partie (game_access seulement)
    typ: str
    jti: str
    iat: int
    exp: int


def _sign(claims: Dict[str, Any], *, typ: str, ttl: timedelta, settings: JWTSettings) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        **claims,
        "iss": settings.issuer,
        "typ": typ,
        "jti": str(uuid.uuid4()),
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(payload, settings.secret, algorithm=settings.algorithm)


def create_access_token(*, user_id: int, username: str, settings: JWTSettings) -> str:
    return _sign(
        {"sub": str(user_id), "username": username},
        typ=ACCESS,
        ttl=settings.access_ttl,
        settings=settings,
    )


def create_game_access_token(*, user_id: int, game_id: int, settings: JWTSettings) -> str:
    return _sign(
        {"sub": str(user_id), "gid": game_id},
        typ=GAME_ACCESS,
        ttl=settings.game_access_ttl,
        settings=settings,
    )


def decode_token(token: str, settings: JWTSettings) -> DecodedToken:
    """Vérifie signature, expiration et émetteur. Lève JWTError sinon."""
    return jwt.decode(  # type: ignore[return-value]
        token,
        settings.secret,
        algorithms=[settings.algorithm],
        issuer=settings.issuer,
        options={"verify_aud": False},
    )


def is_game_access_token_valid(token: str, *, user_id: int, game_id: int, settings: JWTSettings) -> bool:
    try:
        decoded = decode_token(token, settings)
    except JWTError:
        return False
    return (
        decoded.get("typ") == GAME_ACCESS
        and decoded.get("sub") == str(user_id)
        and decoded.get("gid") == game_id
    )
