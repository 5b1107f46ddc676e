from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from dreidel.core.config import get_settings
from dreidel.core.security import Identity, identity_from_token, strip_bearer
from dreidel.realtime import socket_server
from dreidel.services.game_table import GameTable
from dreidel.services.stats_service import StatsStore

bearer_scheme = HTTPBearer(auto_error=False)


def get_optional_identity(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Identity | None:
    token = credentials.credentials if credentials else None
    if not token:
        token = strip_bearer(request.cookies.get(get_settings().session_cookie_name))
    return identity_from_token(token)


def get_current_identity(identity: Identity | None = Depends(get_optional_identity)) -> Identity:
    if identity is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )
    return identity


def get_game_table() -> GameTable:
    return socket_server.game_table


def get_stats_store() -> StatsStore:
    if socket_server.stats_store is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Stats are disabled",
        )
    return socket_server.stats_store
