"""
Exceptions métier du moteur de réservation.

Les services lèvent ces exceptions ; les routers les traduisent en HTTPException.
Chaque erreur porte un `code` stable (consommé par le front) et un message.
"""

from typing import Any, Dict, Iterable, List, Tuple


class SquaresError(Exception):
    code: str = "SQUARES_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_detail(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message}


class NotFound(SquaresError, LookupError):
    code = "NOT_FOUND"


class GameNotJoinable(SquaresError):
    """La partie n'est pas OPEN (DRAFT, LOCKED, COMPLETED, CANCELLED...)."""
    code = "GAME_NOT_JOINABLE"


class PlayerBlocked(SquaresError):
    code = "PLAYER_BLOCKED"


class QuotaExceeded(SquaresError):
    code = "QUOTA_EXCEEDED"

    def __init__(self, max_squares: int, current: int, requested: int):
        super().__init__(
            f"Maximum {max_squares} squares per player "
            f"(already holding {current}, requested {requested})"
        )
        self.max_squares = max_squares
        self.current = current
        self.requested = requested

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail.update(
            max_squares=self.max_squares,
            current=self.current,
            requested=self.requested,
        )
        return detail


class CellUnavailable(SquaresError):
    """Au moins une case demandée n'est plus AVAILABLE."""
    code = "CELL_UNAVAILABLE"

    def __init__(self, cells: Iterable[Tuple[int, int]]):
        self.cells: List[Tuple[int, int]] = sorted(set(cells))
        super().__init__("One or more squares are not available")

    def to_detail(self) -> Dict[str, Any]:
        detail = super().to_detail()
        detail["cells"] = [{"row": r, "col": c} for r, c in self.cells]
        return detail


class NotManager(SquaresError):
    code = "NOT_MANAGER"


class AlreadyLocked(SquaresError):
    code = "ALREADY_LOCKED"


class AccessDenied(SquaresError):
    code = "ACCESS_DENIED"


class InvalidTransition(SquaresError):
    code = "INVALID_TRANSITION"


class InvalidPassword(SquaresError):
    code = "INVALID_PASSWORD"
