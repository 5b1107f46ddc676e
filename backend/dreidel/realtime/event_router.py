import asyncio
import logging
from collections.abc import Awaitable, Callable

from dreidel.core.security import Identity
from dreidel.realtime.broadcast import BroadcastGateway
from dreidel.services.game_table import GameTable, SpinResult
from dreidel.services.stats_service import StatsStore

logger = logging.getLogger(__name__)

SPIN_INTENT = "spin"
RESTART_INTENT = "restart"


class EventRouter:
    """Dispatches player intents to the table and broadcasts what changed.

    The sender's identity always comes from its connection binding. A game
    over schedules an auto-reset tied to the table epoch it ended in, so a
    manual restart that lands first turns the late timer into a no-op.
    """

    def __init__(
        self,
        table: GameTable,
        gateway: BroadcastGateway,
        stats_store: StatsStore | None = None,
        reset_delay_seconds: float = 5.0,
    ) -> None:
        self._table = table
        self._gateway = gateway
        self._stats_store = stats_store
        self._reset_delay_seconds = max(0.0, float(reset_delay_seconds))
        self._reset_task: asyncio.Task | None = None
        self._handlers: dict[str, Callable[[Identity], Awaitable[bool]]] = {
            SPIN_INTENT: self._handle_spin,
            RESTART_INTENT: self._handle_restart,
        }

    @property
    def intents(self) -> tuple[str, ...]:
        return tuple(self._handlers)

    @property
    def reset_pending(self) -> bool:
        return self._reset_task is not None and not self._reset_task.done()

    async def dispatch(self, intent: str, identity: Identity) -> bool:
        handler = self._handlers.get(intent)
        if handler is None:
            logger.debug("Ignoring unknown intent %r from %s", intent, identity.id)
            return False
        return await handler(identity)

    async def _handle_spin(self, identity: Identity) -> bool:
        result = self._table.spin(identity.id)
        if result is None:
            return False

        snapshot = self._table.snapshot()
        await self._gateway.broadcast_state(snapshot)
        self._record_spin(result)

        if result.winner is not None:
            await self._gateway.broadcast_game_over(result.winner.name)
            if self._stats_store is not None:
                self._stats_store.record_players(
                    snapshot.players,
                    winner_id=result.winner.id,
                    finished_game=True,
                )
            self._schedule_auto_reset(result.epoch)
        return True

    async def _handle_restart(self, identity: Identity) -> bool:
        self._cancel_auto_reset()
        epoch = self._table.reset()
        logger.info("%s restarted the table (epoch %d)", identity.id, epoch)
        await self._after_reset()
        return True

    def _record_spin(self, result: SpinResult) -> None:
        if self._stats_store is None or result.winner is not None:
            return
        self._stats_store.upsert(result.player_id, name=result.player_name, coins=result.coins)

    async def _after_reset(self) -> None:
        snapshot = self._table.snapshot()
        await self._gateway.broadcast_state(snapshot)
        if self._stats_store is not None:
            self._stats_store.record_players(snapshot.players)

    def _schedule_auto_reset(self, epoch: int) -> None:
        self._cancel_auto_reset()
        self._reset_task = asyncio.create_task(self._auto_reset(epoch))

    async def _auto_reset(self, epoch: int) -> None:
        await asyncio.sleep(self._reset_delay_seconds)
        if not self._table.reset_if_epoch(epoch):
            logger.debug("Skipping stale auto-reset for epoch %d", epoch)
            return
        logger.info("Auto-reset after game over at epoch %d", epoch)
        await self._after_reset()

    def _cancel_auto_reset(self) -> None:
        task, self._reset_task = self._reset_task, None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def shutdown(self) -> None:
        task, self._reset_task = self._reset_task, None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
