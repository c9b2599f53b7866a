import logging
import secrets
import string
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlmodel import Session

from app.core.config import settings
from app.core.errors import (
    AlreadyLocked,
    GameNotJoinable,
    InvalidPassword,
    InvalidTransition,
    NotFound,
    SquaresError,
)
from app.db.models.games import Game, GameStatus, NUMBERED_STATUSES
from app.db.models.players import PlayerRole
from app.db.models.squares import SquareStatus
from app.db.repositories.games import GameRepository
from app.db.repositories.players import GamePlayerRepository
from app.db.repositories.squares import SquareRepository
from app.db.repositories.users import UserRepository
from app.features.games.access import (
    Capabilities,
    capabilities_for,
    ensure_can_manage,
    ensure_can_view,
    ensure_manager,
    ensure_password_access,
)
from app.features.games.schemas import GameCreateIn, GameUpdateIn
from app.features.live.broker import GridChangeBroker, grid_changes
from app.features.notifications.services import NotificationService
from app.security.password import hash_password, verify_password
from app.security.tokens import JWTSettings, create_game_access_token
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

DIGITS = list(range(10))

# action PATCH -> (statuts de départ autorisés, statut d'arrivée)
STATUS_ACTIONS = {
    "start": ((GameStatus.LOCKED,), GameStatus.IN_PROGRESS),
    "complete": ((GameStatus.LOCKED, GameStatus.IN_PROGRESS), GameStatus.COMPLETED),
    "cancel": ((GameStatus.DRAFT, GameStatus.OPEN, GameStatus.LOCKED), GameStatus.CANCELLED),
}


def random_digit_permutation(rng: Optional[secrets.SystemRandom] = None) -> List[int]:
    """
    Permutation uniforme de 0..9 (Fisher-Yates via random.shuffle, source CSPRNG).
    Chacun des 10! ordres est équiprobable.
    """
    digits = list(DIGITS)
    (rng or secrets.SystemRandom()).shuffle(digits)
    return digits


class GameService:
    """
    Service métier Game : création (grille de 100 cases), réglages, accès par mot de passe,
    verrouillage + tirage des numéros, cycle de vie, invitations.
    """
    def __init__(
        self,
        session: Session,
        game_repo: GameRepository,
        square_repo: SquareRepository,
        player_repo: GamePlayerRepository,
        user_repo: UserRepository,
        notifications: NotificationService,
        jwt_settings: JWTSettings,
        *,
        now_fn: Callable[[], datetime] = utcnow,
        broker: GridChangeBroker = grid_changes,
        permutation_fn: Callable[[], List[int]] = random_digit_permutation,
    ):
        self.session = session

        self.games = game_repo
        self.squares = square_repo
        self.players = player_repo
        self.users = user_repo
        self.notifications = notifications

        self.jwt = jwt_settings
        self.now_fn = now_fn
        self.broker = broker
        self.permutation_fn = permutation_fn

    # -----------------------------------
    # Helpers
    # -----------------------------------
    def _get_game_or_404(self, game_id: int) -> Game:
        game = self.games.get(game_id)
        if not game:
            raise NotFound("GAME_NOT_FOUND")
        return game

    def _caps(self, game: Game, user_id: int) -> Capabilities:
        return capabilities_for(game, user_id, self.players.get_membership(game.id, user_id))

    def _generate_entry_code(self) -> str:
        """
        Code court, safe pour URL, sans caractères ambigus.
        Exemple: K7M2QX9P
        """
        alphabet = "".join(c for c in string.ascii_uppercase + string.digits if c not in "O0I1L")
        return "".join(secrets.choice(alphabet) for _ in range(8))

    def to_out(self, game: Game) -> Dict[str, Any]:
        return {
            **game.model_dump(exclude={"access_password", "paid_at", "updated_at"}),
            "password_protected": bool(game.access_password),
        }

    # ---------------------------------------------------------------------
    # Create
    # ---------------------------------------------------------------------

    def create_game(self, payload: GameCreateIn, *, manager_id: int) -> Game:
        code = self._generate_entry_code()
        tries = 0
        while self.games.get_by_entry_code(code):
            tries += 1
            if tries >= 10:
                raise RuntimeError("ENTRY_CODE_GENERATION_FAILED")
            code = self._generate_entry_code()

        status = GameStatus.DRAFT if settings.GAMES_REQUIRE_ACTIVATION else GameStatus.OPEN
        fields = payload.model_dump(exclude={"access_password"})

        # Transaction globale : partie + 100 cases + manager au roster
        game = self.games.create(
            commit=False,
            manager_id=manager_id,
            entry_code=code,
            status=status,
            access_password=hash_password(payload.access_password) if payload.access_password else None,
            **fields,
        )
        self.squares.create_grid(game.id)
        self.players.create(commit=False, game_id=game.id, user_id=manager_id, role=PlayerRole.CO_MANAGER)

        self.session.commit()
        self.session.refresh(game)
        logger.info("Game %s created by user %s (%s)", game.id, manager_id, game.status.value)
        return game

    # ---------------------------------------------------------------------
    # Read
    # ---------------------------------------------------------------------

    def get_game(self, game_id: int, *, user_id: int) -> Game:
        game = self._get_game_or_404(game_id)
        ensure_can_view(game, self._caps(game, user_id))
        return game

    def list_user_games(self, user_id: int, *, offset: int = 0, limit: int = 100):
        return self.games.list_for_user(user_id, offset=offset, limit=limit)

    def get_by_entry_code(self, entry_code: str) -> Dict[str, Any]:
        game = self.games.get_by_entry_code(entry_code.upper())
        if not game:
            raise NotFound("GAME_NOT_FOUND")
        return {
            "id": game.id,
            "name": game.name,
            "entry_code": game.entry_code,
            "team_home": game.team_home,
            "team_away": game.team_away,
            "game_date": game.game_date,
            "status": game.status,
            "price_per_square": game.price_per_square,
            "max_squares_per_player": game.max_squares_per_player,
            "password_protected": bool(game.access_password),
            "available_squares": self.squares.count_by_status(game.id, SquareStatus.AVAILABLE),
        }

    # ---------------------------------------------------------------------
    # Update / actions
    # ---------------------------------------------------------------------

    def update_game(self, game_id: int, payload: GameUpdateIn, *, user_id: int) -> Game:
        game = self._get_game_or_404(game_id)
        ensure_manager(game, self._caps(game, user_id))

        changes = payload.settings_changes()
        if changes:
            payouts = [
                changes.get(k, getattr(game, k))
                for k in ("payout_q1", "payout_q2", "payout_q3", "payout_final")
            ]
            if sum(payouts) != 100:
                raise ValueError("Payouts must total 100%")
            # flush seulement : les réglages sont validés avec l'action, ou annulés avec elle
            game = self.games.update(game, commit=False, **changes)

        try:
            if payload.action == "lock":
                self.lock_grid(game_id, user_id=user_id)
            elif payload.action:
                self.transition(game_id, payload.action, user_id=user_id)
            else:
                self.session.commit()
        except SquaresError:
            self.session.rollback()
            raise

        self.session.refresh(game)
        return game

    def lock_grid(self, game_id: int, *, user_id: int) -> Dict[str, Any]:
        """
        OPEN -> LOCKED + tirage des numéros, une seule fois par partie.
        Les statuts des cases ne changent pas (les cases réservées restent visibles telles quelles).
        """
        game = self._get_game_or_404(game_id)
        ensure_manager(game, self._caps(game, user_id))

        now = self.now_fn()
        row_numbers = self.permutation_fn()
        col_numbers = self.permutation_fn()

        locked = self.games.lock_if_open(
            game_id,
            row_numbers=row_numbers,
            col_numbers=col_numbers,
            locked_at=now,
        )
        if not locked:
            self.session.rollback()
            self.session.refresh(game)
            if game.status in NUMBERED_STATUSES:
                raise AlreadyLocked("Numbers have already been assigned for this game")
            raise GameNotJoinable(f"Game is {game.status.value}, only OPEN games can be locked")

        self.session.commit()
        self.session.refresh(game)

        unfilled = self.squares.count_by_status(game_id, SquareStatus.AVAILABLE)
        if unfilled:
            logger.warning("Game %s locked with %d unfilled square(s)", game_id, unfilled)
        logger.info("Game %s locked, rows=%s cols=%s", game_id, game.row_numbers, game.col_numbers)
        self.broker.publish(game_id)

        return {
            "game_id": game.id,
            "status": game.status,
            "row_numbers": list(game.row_numbers),
            "col_numbers": list(game.col_numbers),
            "locked_at": game.locked_at,
            "unfilled_squares": unfilled,
        }

    def transition(self, game_id: int, action: str, *, user_id: int) -> Game:
        game = self._get_game_or_404(game_id)
        ensure_manager(game, self._caps(game, user_id))

        if action not in STATUS_ACTIONS:
            raise InvalidTransition(f"Unknown action {action!r}")
        from_statuses, to_status = STATUS_ACTIONS[action]

        if not self.games.transition_status(game_id, from_statuses=from_statuses, to_status=to_status):
            self.session.rollback()
            self.session.refresh(game)
            raise InvalidTransition(f"Cannot {action} a game that is {game.status.value}")

        self.session.commit()
        self.session.refresh(game)
        self.broker.publish(game_id)
        return game

    def activate_game(self, game_id: int) -> Game:
        """Hook facturation : paiement de création confirmé => DRAFT -> OPEN."""
        game = self._get_game_or_404(game_id)
        if not self.games.transition_status(
            game_id,
            from_statuses=(GameStatus.DRAFT,),
            to_status=GameStatus.OPEN,
            paid_at=self.now_fn(),
        ):
            self.session.rollback()
            self.session.refresh(game)
            raise InvalidTransition(f"Cannot activate a game that is {game.status.value}")
        self.session.commit()
        self.session.refresh(game)
        return game

    def delete_game(self, game_id: int, *, user_id: int) -> None:
        game = self._get_game_or_404(game_id)
        ensure_manager(game, self._caps(game, user_id))
        self.games.delete_with_children(game)
        logger.info("Game %s deleted by user %s", game_id, user_id)
        self.broker.publish(game_id)

    # ---------------------------------------------------------------------
    # Password / access / join
    # ---------------------------------------------------------------------

    def set_password(self, game_id: int, *, user_id: int, enabled: bool, password: Optional[str]) -> bool:
        game = self._get_game_or_404(game_id)
        ensure_manager(game, self._caps(game, user_id))
        if enabled:
            if not password or len(password) < 4:
                raise ValueError("Password must be at least 4 characters")
            self.games.update(game, access_password=hash_password(password))
        else:
            self.games.update(game, access_password=None)
        return enabled

    def access_status(self, game_id: int, *, user_id: int) -> Dict[str, bool]:
        game = self._get_game_or_404(game_id)
        caps = self._caps(game, user_id)
        return {
            "password_required": bool(game.access_password),
            "has_access": caps.can_view,
        }

    def grant_access(self, game_id: int, *, user_id: int, password: Optional[str]) -> Dict[str, Any]:
        """
        Échange le mot de passe de la partie contre un jeton signé (partie, viewer).
        Remplace le simple drapeau côté client : c'est le serveur qui fait foi.
        """
        game = self._get_game_or_404(game_id)
        caps = self._caps(game, user_id)

        if game.access_password and not caps.can_view:
            if not password or not verify_password(password, game.access_password):
                raise InvalidPassword("Incorrect password")

        token = create_game_access_token(user_id=user_id, game_id=game.id, settings=self.jwt)
        return {
            "access_token": token,
            "expires_in": int(self.jwt.game_access_ttl.total_seconds()),
        }

    def join_game(self, game_id: int, *, user_id: int, game_access_token: Optional[str] = None) -> Dict[str, Any]:
        game = self._get_game_or_404(game_id)
        if game.status != GameStatus.OPEN:
            raise GameNotJoinable(f"Game is {game.status.value}")

        caps = self._caps(game, user_id)
        ensure_password_access(game, caps, game_access_token=game_access_token, jwt_settings=self.jwt)

        member = self.players.ensure_member(game.id, user_id)
        self.session.commit()
        self.session.refresh(member)
        return {"game_id": game.id, "user_id": user_id, "role": member.role, "blocked": member.blocked}

    # ---------------------------------------------------------------------
    # Invitations
    # ---------------------------------------------------------------------

    def invite(self, game_id: int, *, user_id: int, emails: List[str]) -> int:
        game = self._get_game_or_404(game_id)
        ensure_can_manage(game, self._caps(game, user_id))

        inviter = self.users.get(user_id)
        inviter_name = inviter.public_name if inviter else "The game manager"

        unique = list(dict.fromkeys(e.strip().lower() for e in emails))
        for email in unique:
            self.notifications.enqueue_invite(game, email=email, manager_name=inviter_name, commit=False)
        self.session.commit()
        return len(unique)
