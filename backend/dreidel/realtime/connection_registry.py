import logging
import threading

from dreidel.core.security import Identity
from dreidel.services.game_table import GameTable

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Binds live socket ids to resolved identities and seats them at the table.

    One identity may hold several connections (tabs); its seat lives until the
    last of them is gone.
    """

    def __init__(self, table: GameTable) -> None:
        self._table = table
        self._sid_to_identity: dict[str, Identity] = {}
        self._user_to_sids: dict[str, set[str]] = {}
        self._lock = threading.Lock()

    def on_connect(self, identity: Identity, sid: str) -> bool:
        with self._lock:
            self._sid_to_identity[sid] = identity
            self._user_to_sids.setdefault(identity.id, set()).add(sid)
            return self._table.seat(identity.id, identity.name, sid)

    def on_disconnect(self, sid: str) -> Identity | None:
        with self._lock:
            identity = self._sid_to_identity.pop(sid, None)
            if identity is None:
                return None

            user_sids = self._user_to_sids.get(identity.id, set())
            user_sids.discard(sid)
            if user_sids:
                self._table.seat(identity.id, identity.name, next(iter(user_sids)))
                return identity

            self._user_to_sids.pop(identity.id, None)
            self._table.unseat(identity.id)
            return identity

    def identity_for(self, sid: str) -> Identity | None:
        with self._lock:
            return self._sid_to_identity.get(sid)

    def connection_ids(self) -> list[str]:
        with self._lock:
            return list(self._sid_to_identity)


