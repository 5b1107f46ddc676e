"""Authoritative state of the dreidel table.

The table is the only writer of players, pot, turn order and spin results.
Every operation takes the table-wide lock; ``turn_index`` is only valid
relative to ``turn_order`` so the two are never guarded separately.
"""

import logging
import math
import random
import threading
from dataclasses import dataclass, replace
from enum import Enum

logger = logging.getLogger(__name__)

STARTING_COINS = 10
ENTRY_CONTRIBUTION = 1


class SpinOutcome(str, Enum):
    NUN = "Nun"
    GIMEL = "Gimel"
    HEY = "Hey"
    SHIN = "Shin"


class TableStatus(str, Enum):
    WAITING = "waiting"
    IN_PROGRESS = "in_progress"
    GAME_OVER = "game_over"


@dataclass
class Player:
    id: str
    name: str
    coins: int
    connection_ref: str | None = None


@dataclass(frozen=True)
class LastSpin:
    player_id: str
    player_name: str
    outcome: SpinOutcome


@dataclass(frozen=True)
class SpinResult:
    player_id: str
    player_name: str
    outcome: SpinOutcome
    coins: int
    pot: int
    epoch: int
    winner: Player | None = None


@dataclass(frozen=True)
class TableSnapshot:
    players: list[Player]
    pot: int
    turn_index: int
    current_turn: str | None
    status: TableStatus
    epoch: int
    last_spin: LastSpin | None = None
    winner_id: str | None = None


def resolve_outcome(outcome: SpinOutcome, coins: int, pot: int) -> tuple[int, int]:
    """Apply one spin to a player's coins and the pot.

    Returns the new ``(coins, pot)`` pair. Hey takes half the pot rounded up,
    Shin pays one coin in unless the player has nothing left.
    """
    if outcome is SpinOutcome.GIMEL:
        return coins + pot, 0
    if outcome is SpinOutcome.HEY:
        take = math.ceil(pot / 2)
        return coins + take, pot - take
    if outcome is SpinOutcome.SHIN:
        if coins > 0:
            return coins - 1, pot + 1
        return coins, pot
    return coins, pot


class GameTable:
    def __init__(
        self,
        starting_coins: int = STARTING_COINS,
        entry_contribution: int = ENTRY_CONTRIBUTION,
        rng: random.Random | None = None,
    ) -> None:
        self.starting_coins = max(0, int(starting_coins))
        self.entry_contribution = max(0, int(entry_contribution))
        self.players: dict[str, Player] = {}
        self.turn_order: list[str] = []
        self.turn_index = 0
        self.pot = 0
        self.epoch = 0
        self.game_over = False
        self.winner_id: str | None = None
        self.last_spin: LastSpin | None = None
        self._rng = rng or random.SystemRandom()
        self._lock = threading.RLock()

    @property
    def status(self) -> TableStatus:
        with self._lock:
            if self.game_over:
                return TableStatus.GAME_OVER
            if not self.turn_order:
                return TableStatus.WAITING
            return TableStatus.IN_PROGRESS

    @property
    def current_turn_id(self) -> str | None:
        with self._lock:
            return self._current_turn_id_locked()

    def _current_turn_id_locked(self) -> str | None:
        if self.game_over or not self.turn_order:
            return None
        return self.turn_order[self.turn_index]

    def total_coins(self) -> int:
        with self._lock:
            return self.pot + sum(player.coins for player in self.players.values())

    def seat(self, player_id: str, name: str, connection_ref: str | None = None) -> bool:
        """Seat a player, or refresh the connection of one already seated.

        Returns True only when a new seat was created.
        """
        with self._lock:
            existing = self.players.get(player_id)
            if existing is not None:
                existing.connection_ref = connection_ref
                return False

            self.players[player_id] = Player(
                id=player_id,
                name=name,
                coins=self.starting_coins,
                connection_ref=connection_ref,
            )
            self.turn_order.append(player_id)
            self.pot += self.entry_contribution
            logger.info("Seated %s (%s); %d at table", player_id, name, len(self.turn_order))
            return True

    def unseat(self, player_id: str) -> Player | None:
        with self._lock:
            player = self.players.pop(player_id, None)
            if player is None:
                return None

            removed_index = self.turn_order.index(player_id)
            self.turn_order.pop(removed_index)
            if not self.turn_order:
                self.turn_index = 0
            elif self.turn_index >= len(self.turn_order):
                self.turn_index = 0

            logger.info(
                "Unseated %s with %d coins; %d at table",
                player_id,
                player.coins,
                len(self.turn_order),
            )
            return player

    def spin(self, requester_id: str, outcome: SpinOutcome | None = None) -> SpinResult | None:
        """Resolve a spin for the current turn holder.

        Returns None without touching state when the table is empty, the game
        is over, or the requester does not hold the turn.
        """
        with self._lock:
            if self.game_over or not self.turn_order:
                return None
            if requester_id != self.turn_order[self.turn_index]:
                return None

            if outcome is None:
                outcome = self._rng.choice(list(SpinOutcome))
            player = self.players[requester_id]
            player.coins, self.pot = resolve_outcome(outcome, player.coins, self.pot)
            self.last_spin = LastSpin(
                player_id=player.id,
                player_name=player.name,
                outcome=outcome,
            )
            logger.debug("%s spun %s: coins=%d pot=%d", player.id, outcome.value, player.coins, self.pot)

            winner = self._find_winner_locked()
            if winner is not None:
                self.game_over = True
                self.winner_id = winner.id
                logger.info("Game over at epoch %d: %s wins", self.epoch, winner.name)
            else:
                self.turn_index = (self.turn_index + 1) % len(self.turn_order)

            return SpinResult(
                player_id=player.id,
                player_name=player.name,
                outcome=outcome,
                coins=player.coins,
                pot=self.pot,
                epoch=self.epoch,
                winner=replace(winner) if winner else None,
            )

    def check_winner(self) -> Player | None:
        with self._lock:
            winner = self._find_winner_locked()
            return replace(winner) if winner else None

    def _find_winner_locked(self) -> Player | None:
        holders = [self.players[pid] for pid in self.turn_order if self.players[pid].coins > 0]
        if len(holders) != 1:
            return None
        return holders[0]

    def reset(self) -> int:
        """Start a fresh round for everyone seated and return the new epoch."""
        with self._lock:
            for player_id in self.turn_order:
                self.players[player_id].coins = self.starting_coins
            self.pot = self.entry_contribution * len(self.turn_order)
            self.turn_index = 0
            self.last_spin = None
            self.game_over = False
            self.winner_id = None
            self.epoch += 1
            logger.info("Table reset to epoch %d with %d seats", self.epoch, len(self.turn_order))
            return self.epoch

    def reset_if_epoch(self, epoch: int) -> bool:
        with self._lock:
            if epoch != self.epoch or not self.game_over:
                return False
            self.reset()
            return True

    def snapshot(self) -> TableSnapshot:
        with self._lock:
            return TableSnapshot(
                players=[replace(self.players[pid]) for pid in self.turn_order],
                pot=self.pot,
                turn_index=self.turn_index,
                current_turn=self._current_turn_id_locked(),
                status=self.status,
                epoch=self.epoch,
                last_spin=self.last_spin,
                winner_id=self.winner_id,
            )
