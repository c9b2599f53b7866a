"""
➡️ But : Moteur SQLAlchemy et sessions par requête.

build_engine(url) : SQLite par défaut (sqlite:///squares.db), clés étrangères activées
pour que la suppression d'une partie emporte ses cases.

init_db() : crée les tables (démo / dev ; en prod on passerait par des migrations).

get_session() : dépendance FastAPI, une session par requête, fermée à la fin.
"""

from typing import Any, Dict, Optional

from sqlalchemy import event
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, Session, create_engine

# Tous les modèles doivent être importés avant create_all
from app.db.models.users import User  # noqa: F401
from app.db.models.games import Game  # noqa: F401
from app.db.models.squares import Square  # noqa: F401
from app.db.models.players import GamePlayer  # noqa: F401
from app.db.models.jobs import NotificationJob  # noqa: F401

from app.core.config import settings


def _enable_sqlite_foreign_keys(dbapi_connection, _record) -> None:
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(url: Optional[str] = None, **kwargs: Any) -> Engine:
    url = url or settings.DATABASE_URL
    if not url:
        raise RuntimeError("DATABASE_URL must be set")

    is_sqlite = url.startswith("sqlite")
    connect_args: Dict[str, Any] = kwargs.pop("connect_args", {})
    if is_sqlite:
        # les routes sync tournent dans le threadpool de FastAPI
        connect_args.setdefault("check_same_thread", False)

    engine = create_engine(
        url,
        echo=(settings.ENV == "dev" and settings.LOG_LEVEL.upper() == "DEBUG"),
        connect_args=connect_args,
        pool_pre_ping=not is_sqlite,
        **kwargs,
    )
    if is_sqlite:
        event.listen(engine, "connect", _enable_sqlite_foreign_keys)
    return engine


engine: Engine = build_engine()


def init_db(bind: Optional[Engine] = None) -> None:
    SQLModel.metadata.create_all(bind or engine)


def get_session():
    """
    def route(..., session: Session = Depends(get_session)): ...
    """
    with Session(engine) as session:
        yield session
