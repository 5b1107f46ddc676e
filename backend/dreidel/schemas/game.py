from pydantic import BaseModel, ConfigDict, Field


class PlayerRead(BaseModel):
    id: str
    name: str
    coins: int


class LastSpinRead(BaseModel):
    player: str
    result: str


class GameStateRead(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    players: dict[str, PlayerRead]
    pot: int
    current_turn: str | None = Field(default=None, alias="currentTurn")
    status: str
    last_spin: LastSpinRead | None = Field(default=None, alias="lastSpin")


class GameOverRead(BaseModel):
    winner: str
