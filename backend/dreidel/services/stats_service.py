import logging
from collections.abc import Callable, Iterable

from sqlalchemy import desc, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from dreidel.db.models import PlayerStats
from dreidel.db.session import SessionLocal
from dreidel.services.game_table import Player

logger = logging.getLogger(__name__)


class StatsStore:
    """Write-through store for per-player coins and wins.

    Writes are best effort: live table state never depends on them, so a
    failing database is logged and otherwise ignored.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal) -> None:
        self._session_factory = session_factory

    def upsert(
        self,
        user_id: str,
        *,
        name: str,
        coins: int,
        won: bool = False,
        finished_game: bool = False,
    ) -> bool:
        db = self._session_factory()
        try:
            self._apply(db, user_id, name=name, coins=coins, won=won, finished_game=finished_game)
            db.commit()
            return True
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to persist stats for %s", user_id)
            return False
        finally:
            db.close()

    def record_players(
        self,
        players: Iterable[Player],
        *,
        winner_id: str | None = None,
        finished_game: bool = False,
    ) -> int:
        db = self._session_factory()
        written = 0
        try:
            for player in players:
                self._apply(
                    db,
                    player.id,
                    name=player.name,
                    coins=player.coins,
                    won=player.id == winner_id,
                    finished_game=finished_game,
                )
                written += 1
            db.commit()
            return written
        except SQLAlchemyError:
            db.rollback()
            logger.exception("Failed to persist stats for %d players", written)
            return 0
        finally:
            db.close()

    @staticmethod
    def _apply(
        db: Session,
        user_id: str,
        *,
        name: str,
        coins: int,
        won: bool,
        finished_game: bool,
    ) -> PlayerStats:
        row = db.get(PlayerStats, user_id)
        if row is None:
            row = PlayerStats(user_id=user_id, name=name, coins=0, wins=0, games_played=0)
            db.add(row)
        row.name = name
        row.coins = max(0, int(coins))
        if won:
            row.wins = int(row.wins or 0) + 1
        if finished_game:
            row.games_played = int(row.games_played or 0) + 1
        return row

    def get(self, user_id: str) -> PlayerStats | None:
        db = self._session_factory()
        try:
            row = db.get(PlayerStats, user_id)
            if row is not None:
                db.expunge(row)
            return row
        finally:
            db.close()

    def leaderboard(self, limit: int = 20) -> list[PlayerStats]:
        db = self._session_factory()
        try:
            stmt = (
                select(PlayerStats)
                .order_by(desc(PlayerStats.wins), desc(PlayerStats.coins), PlayerStats.name)
                .limit(max(1, int(limit)))
            )
            rows = list(db.scalars(stmt))
            for row in rows:
                db.expunge(row)
            return rows
        finally:
            db.close()
