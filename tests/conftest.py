from datetime import datetime, timedelta
from typing import Dict

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, create_engine

from app.api.v1.dependencies import get_email_sender, get_session_factory
from app.core.config import jwt_settings
from app.db.models.users import User
from app.db.repositories.games import GameRepository
from app.db.repositories.jobs import NotificationJobRepository
from app.db.repositories.players import GamePlayerRepository
from app.db.repositories.squares import SquareRepository
from app.db.repositories.users import UserRepository
from app.db.session import get_session, init_db
from app.features.games.schemas import GameCreateIn
from app.features.games.services import GameService
from app.features.live.broker import GridChangeBroker
from app.features.notifications.senders import LogEmailSender
from app.features.notifications.services import NotificationService
from app.features.players.services import PlayerService
from app.features.squares.services import SquareService
from app.features.sweeper.services import ExpirySweeper
from app.main import app
from app.security.password import hash_password
from app.security.tokens import create_access_token


class Clock:
    """Horloge injectable (now_fn) pour les tests d'expiration."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def clock():
    return Clock(datetime(2027, 2, 1, 12, 0, 0))


@pytest.fixture
def broker():
    return GridChangeBroker()


@pytest.fixture
def sender():
    return LogEmailSender()


@pytest.fixture
def services(session, clock, broker):
    """Les services métier câblés sur la même session, la même horloge et un broker isolé."""
    notifications = NotificationService(job_repo=NotificationJobRepository(session), now_fn=clock)
    repos = dict(
        game_repo=GameRepository(session),
        square_repo=SquareRepository(session),
        player_repo=GamePlayerRepository(session),
        user_repo=UserRepository(session),
        notifications=notifications,
        jwt_settings=jwt_settings,
    )
    return {
        "games": GameService(session, **repos, now_fn=clock, broker=broker),
        "squares": SquareService(session, **repos, now_fn=clock, broker=broker),
        "players": PlayerService(
            session,
            repos["game_repo"],
            repos["player_repo"],
            repos["square_repo"],
            now_fn=clock,
            broker=broker,
        ),
        "sweeper": ExpirySweeper(
            session,
            repos["game_repo"],
            repos["square_repo"],
            repos["user_repo"],
            notifications,
            now_fn=clock,
            broker=broker,
        ),
        "notifications": notifications,
    }


@pytest.fixture
def make_user(session):
    counter = {"n": 0}

    def _make(username: str = None, *, email: str = None, display_name: str = "") -> User:
        counter["n"] += 1
        username = username or f"user{counter['n']}"
        return UserRepository(session).create(
            username=username,
            display_name=display_name,
            email=email if email is not None else f"{username}@example.com",
            hashed_password=hash_password("secret-password"),
        )

    return _make


@pytest.fixture
def manager(make_user):
    return make_user("manager", display_name="The Manager")


@pytest.fixture
def make_game(services, manager):
    def _make(**overrides):
        fields = dict(
            name="Super Bowl Pool",
            team_home="Kansas City",
            team_away="Philadelphia",
            game_date=datetime(2027, 2, 7, 23, 30),
            max_squares_per_player=10,
            reservation_hours=24,
        )
        fields.update(overrides)
        manager_id = fields.pop("manager_id", manager.id)
        return services["games"].create_game(GameCreateIn(**fields), manager_id=manager_id)

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(user_id=user.id, username=user.username, settings=jwt_settings)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(engine, sender):
    def _get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = _get_session
    app.dependency_overrides[get_session_factory] = lambda: (lambda: Session(engine))
    app.dependency_overrides[get_email_sender] = lambda: sender
    yield TestClient(app)
    app.dependency_overrides.clear()
