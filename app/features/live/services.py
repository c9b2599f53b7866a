"""
➡️ But : Flux Server-Sent Events de la grille d'une partie.

1. événement `connected`
2. `squares_updated` (les 100 cases, ordre ligne puis colonne) tout de suite,
   puis à chaque notification du broker ou au plus tard toutes les `interval` secondes
3. arrêt dès que le client se déconnecte
"""

import json
import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Dict, List, Optional

from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from sqlmodel import Session

from app.core.config import settings
from app.db.repositories.squares import SquareRepository
from app.features.live.broker import GridChangeBroker, grid_changes
from app.features.squares.services import square_row_to_dict

logger = logging.getLogger(__name__)


def format_sse(event: str, data: Any) -> str:
    payload = json.dumps(jsonable_encoder(data), separators=(",", ":"))
    return f"event: {event}\ndata: {payload}\n\n"


class LiveFeedService:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        *,
        broker: GridChangeBroker = grid_changes,
        interval: float = settings.LIVE_FEED_INTERVAL_SECONDS,
    ):
        self.session_factory = session_factory
        self.broker = broker
        self.interval = interval

    def snapshot(self, game_id: int) -> List[Dict[str, Any]]:
        # session courte par snapshot : le flux peut durer des heures
        with self.session_factory() as session:
            rows = SquareRepository(session).list_for_game_with_occupant(game_id)
            return [square_row_to_dict(r) for r in rows]

    async def stream(
        self,
        game_id: int,
        *,
        is_disconnected: Optional[Callable[[], Awaitable[bool]]] = None,
        max_events: Optional[int] = None,
    ) -> AsyncIterator[str]:
        sub = self.broker.subscribe(game_id)
        sent = 0
        try:
            yield format_sse("connected", {"game_id": game_id})

            while True:
                if is_disconnected and await is_disconnected():
                    logger.debug("Live feed client for game %s disconnected", game_id)
                    break

                squares = await run_in_threadpool(self.snapshot, game_id)
                yield format_sse("squares_updated", {"game_id": game_id, "squares": squares})
                sent += 1
                if max_events is not None and sent >= max_events:
                    break

                await sub.wait(self.interval)
        finally:
            self.broker.unsubscribe(sub)
