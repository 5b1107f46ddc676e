from datetime import datetime

from pydantic import BaseModel, ConfigDict


class PlayerStatsRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    user_id: str
    name: str
    coins: int
    wins: int
    games_played: int
    updated_at: datetime | None = None


class LeaderboardEntryRead(PlayerStatsRead):
    rank: int


class LeaderboardRead(BaseModel):
    generated_at: datetime
    entries: list[LeaderboardEntryRead]
