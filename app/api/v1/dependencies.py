"""
➡️ But : Fabriques Depends() des routes v1.

- services métier câblés sur la session de la requête (GameService, SquareService, ...),
- jetons : bearer utilisateur et header X-Game-Access des parties protégées,
- require_cron_secret : garde des routes /cron et /internal.

Les tests surchargent get_session, get_session_factory et get_email_sender.
"""

import secrets
from typing import Callable, Optional

from fastapi import Depends, Header, HTTPException, Query, status, Security
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlmodel import Session

from app.db.session import engine, get_session

from app.db.repositories.users import UserRepository
from app.db.repositories.games import GameRepository
from app.db.repositories.squares import SquareRepository
from app.db.repositories.players import GamePlayerRepository
from app.db.repositories.jobs import NotificationJobRepository

from app.features.authentication.services import AuthService
from app.features.games.services import GameService
from app.features.squares.services import SquareService
from app.features.players.services import PlayerService
from app.features.sweeper.services import ExpirySweeper
from app.features.live.services import LiveFeedService
from app.features.notifications.senders import EmailSender, build_email_sender
from app.features.notifications.services import JobProcessor, NotificationService

from app.core.config import jwt_settings, settings

def pagination(
    page: int = Query(1, ge=1, description="Numéro de page", examples=[1]),
    size: int = Query(20, ge=1, le=100, description="Taille de page", examples=[20]),
):
    offset = (page - 1) * size
    return {"offset": offset, "limit": size}


# -----------------------------
# Auth
# -----------------------------
def get_auth_service(session: Session = Depends(get_session)) -> AuthService:
    return AuthService(
        user_repo=UserRepository(session),
        jwt_settings=jwt_settings,
    )


# -----------------------------
# Repositories
# -----------------------------
def get_user_repository(session: Session = Depends(get_session)) -> UserRepository:
    return UserRepository(session)

def get_game_repository(session: Session = Depends(get_session)) -> GameRepository:
    return GameRepository(session)

def get_square_repository(session: Session = Depends(get_session)) -> SquareRepository:
    return SquareRepository(session)

def get_player_repository(session: Session = Depends(get_session)) -> GamePlayerRepository:
    return GamePlayerRepository(session)

def get_job_repository(session: Session = Depends(get_session)) -> NotificationJobRepository:
    return NotificationJobRepository(session)


# -----------------------------
# Notifications
# -----------------------------
def get_notification_service(
    job_repo: NotificationJobRepository = Depends(get_job_repository),
) -> NotificationService:
    return NotificationService(job_repo=job_repo)

def get_email_sender() -> EmailSender:
    return build_email_sender(settings)

def get_job_processor(
    job_repo: NotificationJobRepository = Depends(get_job_repository),
    sender: EmailSender = Depends(get_email_sender),
) -> JobProcessor:
    return JobProcessor(job_repo=job_repo, sender=sender)


# -----------------------------
# Game service
# -----------------------------
def get_game_service(
    session: Session = Depends(get_session),
    game_repo: GameRepository = Depends(get_game_repository),
    square_repo: SquareRepository = Depends(get_square_repository),
    player_repo: GamePlayerRepository = Depends(get_player_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    notifications: NotificationService = Depends(get_notification_service),
) -> GameService:
    """
    Fournit une instance de GameService avec tous ses repositories injectés.
    - aucune logique dans la route
    - dépendances résolues par FastAPI
    """
    return GameService(
        session=session,
        game_repo=game_repo,
        square_repo=square_repo,
        player_repo=player_repo,
        user_repo=user_repo,
        notifications=notifications,
        jwt_settings=jwt_settings,
    )

# -----------------------------
# Squares / players
# -----------------------------
def get_square_service(
    session: Session = Depends(get_session),
    game_repo: GameRepository = Depends(get_game_repository),
    square_repo: SquareRepository = Depends(get_square_repository),
    player_repo: GamePlayerRepository = Depends(get_player_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    notifications: NotificationService = Depends(get_notification_service),
) -> SquareService:
    return SquareService(
        session=session,
        game_repo=game_repo,
        square_repo=square_repo,
        player_repo=player_repo,
        user_repo=user_repo,
        notifications=notifications,
        jwt_settings=jwt_settings,
    )

def get_player_service(
    session: Session = Depends(get_session),
    game_repo: GameRepository = Depends(get_game_repository),
    player_repo: GamePlayerRepository = Depends(get_player_repository),
    square_repo: SquareRepository = Depends(get_square_repository),
) -> PlayerService:
    return PlayerService(
        session=session,
        game_repo=game_repo,
        player_repo=player_repo,
        square_repo=square_repo,
    )

# -----------------------------
# Sweeper
# -----------------------------
def get_expiry_sweeper(
    session: Session = Depends(get_session),
    game_repo: GameRepository = Depends(get_game_repository),
    square_repo: SquareRepository = Depends(get_square_repository),
    user_repo: UserRepository = Depends(get_user_repository),
    notifications: NotificationService = Depends(get_notification_service),
) -> ExpirySweeper:
    return ExpirySweeper(
        session=session,
        game_repo=game_repo,
        square_repo=square_repo,
        user_repo=user_repo,
        notifications=notifications,
    )

# -----------------------------
# Live feed (SSE)
# -----------------------------
def get_session_factory() -> Callable[[], Session]:
    """Le flux SSE ouvre une session courte par snapshot, hors du cycle de la requête."""
    return lambda: Session(engine)

def get_live_feed_service(
    session_factory: Callable[[], Session] = Depends(get_session_factory),
) -> LiveFeedService:
    return LiveFeedService(session_factory)


# -----------------------------
# Authentication data
# -----------------------------
bearer_scheme = HTTPBearer(auto_error=True)

def get_access_token_from_bearer(
    credentials: HTTPAuthorizationCredentials = Security(bearer_scheme),
) -> str:
    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid auth scheme")
    return credentials.credentials


def get_game_access_token(
    x_game_access: Optional[str] = Header(default=None, alias="X-Game-Access"),
) -> Optional[str]:
    """Jeton signé obtenu via POST /games/{id}/access (parties protégées par mot de passe)."""
    return x_game_access or None


cron_bearer_scheme = HTTPBearer(auto_error=False)

def require_cron_secret(
    credentials: Optional[HTTPAuthorizationCredentials] = Security(cron_bearer_scheme),
) -> None:
    """
    Routes cron / internes : `Authorization: Bearer <CRON_SECRET>`.
    Sans CRON_SECRET configuré, ouvertes uniquement hors prod.
    """
    expected = settings.CRON_SECRET
    if not expected:
        if settings.ENV == "prod":
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Cron secret not configured")
        return
    if not credentials or not secrets.compare_digest(credentials.credentials, expected):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Unauthorized")
