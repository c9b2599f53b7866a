from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

import yaml
from sqlmodel import Session, select

from app.core.config import jwt_settings
from app.db.models.games import Game
from app.db.models.users import User
from app.db.repositories.games import GameRepository
from app.db.repositories.jobs import NotificationJobRepository
from app.db.repositories.players import GamePlayerRepository
from app.db.repositories.squares import SquareRepository
from app.db.repositories.users import UserRepository
from app.features.games.schemas import GameCreateIn
from app.features.games.services import GameService
from app.features.notifications.services import NotificationService
from app.features.squares.services import SquareService
from app.security.password import hash_password


# -----------------------------
# YAML loader
# -----------------------------
def load_seed_yaml(seed_path: str | Path) -> Dict[str, Any]:
    path = Path(seed_path)
    if not path.exists():
        raise FileNotFoundError(f"Seed YAML introuvable: {path}")

    data = yaml.safe_load(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError("Le YAML de seed doit contenir un objet racine (mapping).")
    return data


def _build_user_key_maps(data: Dict[str, Any]) -> Dict[str, str]:
    """user_key -> User.username (car User.key n'existe pas en DB)."""
    users_yaml: List[Dict[str, Any]] = data.get("users", [])
    return {u["key"]: u["username"] for u in users_yaml}


# -----------------------------
# Seed Users
# -----------------------------
def seed_users(session: Session, data: Dict[str, Any]) -> None:
    if session.exec(select(User)).first():
        print("ℹ️ Les utilisateurs existent déjà, aucune insertion effectuée.")
        return

    users: List[Dict[str, Any]] = data.get("users", [])
    if not users:
        print("⚠️ Aucun utilisateur dans le YAML (clé 'users').")
        return

    session.add_all([
        User(
            username=u["username"],
            display_name=u.get("display_name", ""),
            email=u.get("email"),
            hashed_password=hash_password(u["password"]),
            admin=bool(u.get("admin", False)),
        )
        for u in users
    ])
    session.commit()
    print(f"✅ {len(users)} utilisateurs insérés.")


# ------------------------------------------------------------
# Seed Games (+ réservations de démo)
# ------------------------------------------------------------
def seed_games(session: Session, data: Dict[str, Any]) -> None:
    """
    Seed idempotent des parties de démo.
    - Utilise la clé YAML `games:` ; `manager_key` et `reservations[].user_key` renvoient à `users:`.
    - Passe par les services pour garantir les 100 cases et les règles de réservation.
    """
    if session.exec(select(Game)).first():
        print("ℹ️ Les parties existent déjà, aucune insertion effectuée.")
        return

    games: List[Dict[str, Any]] = data.get("games", [])
    if not games:
        print("⚠️ Aucune partie dans le YAML (clé 'games').")
        return

    user_key_to_username = _build_user_key_maps(data)
    user_repo = UserRepository(session)
    notifications = NotificationService(job_repo=NotificationJobRepository(session))
    repos = dict(
        game_repo=GameRepository(session),
        square_repo=SquareRepository(session),
        player_repo=GamePlayerRepository(session),
        user_repo=user_repo,
        notifications=notifications,
        jwt_settings=jwt_settings,
    )
    game_svc = GameService(session, **repos)
    square_svc = SquareService(session, **repos)

    def _user(key: str) -> User:
        username = user_key_to_username.get(key)
        user = user_repo.get_by_username(username) if username else None
        if not user:
            raise ValueError(f"user_key '{key}' inconnu. As-tu bien seed les utilisateurs avant les parties ?")
        return user

    for g in games:
        manager = _user(g["manager_key"])
        fields = {k: v for k, v in g.items() if k not in ("manager_key", "reservations")}
        if isinstance(fields.get("game_date"), str):
            fields["game_date"] = datetime.fromisoformat(fields["game_date"])
        game = game_svc.create_game(GameCreateIn(**fields), manager_id=manager.id)

        for r in g.get("reservations", []):
            player = _user(r["user_key"])
            square_svc.reserve_squares(
                game.id,
                user_id=player.id,
                cells=[tuple(c) for c in r["cells"]],
            )

    print(f"✅ {len(games)} parties insérées.")


# -----------------------------
# Orchestrateur
# -----------------------------
def seed_all(*, session: Session, seed_path: str | Path) -> None:
    data = load_seed_yaml(seed_path)
    seed_users(session, data)
    seed_games(session, data)
