"""
Notifications de changement de grille, par partie (pub/sub in-process).

Les services publient après commit (depuis le threadpool de FastAPI) ;
les flux SSE attendent sur leur boucle asyncio. Les autres processus serveur
ne sont pas notifiés : le flux retombe alors sur son intervalle fixe.
"""

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Dict, Set

logger = logging.getLogger(__name__)


class Subscription:
    def __init__(self, game_id: int, loop: asyncio.AbstractEventLoop):
        self.game_id = game_id
        self.loop = loop
        self.event = asyncio.Event()

    def notify(self) -> None:
        try:
            self.loop.call_soon_threadsafe(self.event.set)
        except RuntimeError:
            # boucle déjà fermée : le flux est en cours d'arrêt
            logger.debug("Dropping change notification for closed loop (game %s)", self.game_id)

    async def wait(self, timeout: float) -> bool:
        """
        True si un changement est arrivé avant `timeout` secondes.
        L'événement est consommé au réveil : un changement publié pendant l'envoi du
        snapshot précédent reste en attente et réveille immédiatement l'appel suivant.
        """
        if not self.event.is_set():
            try:
                await asyncio.wait_for(self.event.wait(), timeout=timeout)
            except asyncio.TimeoutError:
                return False
        self.event.clear()
        return True


class GridChangeBroker:
    def __init__(self):
        self._lock = threading.Lock()
        self._subscribers: Dict[int, Set[Subscription]] = defaultdict(set)

    def subscribe(self, game_id: int) -> Subscription:
        """À appeler depuis la boucle asyncio du flux."""
        sub = Subscription(game_id, asyncio.get_running_loop())
        with self._lock:
            self._subscribers[game_id].add(sub)
        return sub

    def unsubscribe(self, sub: Subscription) -> None:
        with self._lock:
            subs = self._subscribers.get(sub.game_id)
            if subs is None:
                return
            subs.discard(sub)
            if not subs:
                del self._subscribers[sub.game_id]

    def publish(self, game_id: int) -> None:
        with self._lock:
            subs = list(self._subscribers.get(game_id, ()))
        for sub in subs:
            sub.notify()

    def subscriber_count(self, game_id: int) -> int:
        with self._lock:
            return len(self._subscribers.get(game_id, ()))


# Instance partagée par les services et le flux SSE
grid_changes = GridChangeBroker()
