from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException, Query, status

from dreidel.api.deps import get_current_identity, get_stats_store
from dreidel.core.security import Identity
from dreidel.schemas.stats import LeaderboardEntryRead, LeaderboardRead, PlayerStatsRead
from dreidel.services.stats_service import StatsStore

router = APIRouter()


@router.get("/me", response_model=PlayerStatsRead)
def get_my_stats(
    identity: Identity = Depends(get_current_identity),
    store: StatsStore = Depends(get_stats_store),
) -> PlayerStatsRead:
    row = store.get(identity.id)
    if row is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No stats recorded yet")
    return PlayerStatsRead.model_validate(row)


@router.get("/leaderboard", response_model=LeaderboardRead)
def get_leaderboard(
    limit: int = Query(default=20, ge=1, le=200),
    _: Identity = Depends(get_current_identity),
    store: StatsStore = Depends(get_stats_store),
) -> LeaderboardRead:
    entries = [
        LeaderboardEntryRead(rank=index, **PlayerStatsRead.model_validate(row).model_dump())
        for index, row in enumerate(store.leaderboard(limit=limit), start=1)
    ]
    return LeaderboardRead(generated_at=datetime.now(timezone.utc), entries=entries)
