import asyncio
import logging
from typing import Any

import socketio

from dreidel.realtime.connection_registry import ConnectionRegistry
from dreidel.schemas.game import GameOverRead, GameStateRead, LastSpinRead, PlayerRead
from dreidel.services.game_table import TableSnapshot

logger = logging.getLogger(__name__)

GAME_STATE_EVENT = "gameState"
GAME_OVER_EVENT = "gameOver"


def serialize_snapshot(snapshot: TableSnapshot) -> dict[str, Any]:
    last_spin = None
    if snapshot.last_spin is not None:
        last_spin = LastSpinRead(
            player=snapshot.last_spin.player_name,
            result=snapshot.last_spin.outcome.value,
        )
    state = GameStateRead(
        players={
            player.id: PlayerRead(id=player.id, name=player.name, coins=player.coins)
            for player in snapshot.players
        },
        pot=snapshot.pot,
        current_turn=snapshot.current_turn,
        status=snapshot.status.value,
        last_spin=last_spin,
    )
    return state.model_dump(by_alias=True)


class BroadcastGateway:
    """Pushes table snapshots to every registered connection.

    Each connection is delivered to on its own; a failed emit is logged and
    never reaches the caller.
    """

    def __init__(self, server: socketio.AsyncServer, registry: ConnectionRegistry) -> None:
        self._server = server
        self._registry = registry

    async def broadcast_state(self, snapshot: TableSnapshot) -> int:
        return await self._fan_out(GAME_STATE_EVENT, serialize_snapshot(snapshot))

    async def broadcast_game_over(self, winner_name: str) -> int:
        return await self._fan_out(GAME_OVER_EVENT, GameOverRead(winner=winner_name).model_dump())

    async def send_state(self, sid: str, snapshot: TableSnapshot) -> bool:
        return await self._deliver(sid, GAME_STATE_EVENT, serialize_snapshot(snapshot))

    async def _fan_out(self, event: str, payload: dict[str, Any]) -> int:
        sids = self._registry.connection_ids()
        if not sids:
            return 0
        results = await asyncio.gather(*(self._deliver(sid, event, payload) for sid in sids))
        return sum(1 for delivered in results if delivered)

    async def _deliver(self, sid: str, event: str, payload: dict[str, Any]) -> bool:
        try:
            await self._server.emit(event, payload, room=sid)
        except Exception:
            logger.warning("Failed to deliver %s to %s", event, sid, exc_info=True)
            return False
        return True
