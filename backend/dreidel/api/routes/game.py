from fastapi import APIRouter, Depends

from dreidel.api.deps import get_current_identity, get_game_table
from dreidel.core.security import Identity
from dreidel.realtime.broadcast import serialize_snapshot
from dreidel.schemas.game import GameStateRead
from dreidel.services.game_table import GameTable

router = APIRouter()


@router.get("/state", response_model=GameStateRead, response_model_by_alias=True)
def get_state(
    _: Identity = Depends(get_current_identity),
    table: GameTable = Depends(get_game_table),
) -> GameStateRead:
    return GameStateRead.model_validate(serialize_snapshot(table.snapshot()))
