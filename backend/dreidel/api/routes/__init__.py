from fastapi import APIRouter

from dreidel.api.routes.auth import router as auth_router
from dreidel.api.routes.game import router as game_router
from dreidel.api.routes.health import router as health_router
from dreidel.api.routes.stats import router as stats_router

router = APIRouter()
router.include_router(health_router, tags=["health"])
router.include_router(auth_router, prefix="/auth", tags=["auth"])
router.include_router(game_router, prefix="/game", tags=["game"])
router.include_router(stats_router, prefix="/stats", tags=["stats"])
