import logging

import socketio

from dreidel.core.config import get_settings
from dreidel.core.security import (
    Identity,
    identity_from_token,
    strip_bearer,
    token_from_cookie_header,
)
from dreidel.realtime.broadcast import BroadcastGateway, serialize_snapshot
from dreidel.realtime.connection_registry import ConnectionRegistry
from dreidel.realtime.event_router import RESTART_INTENT, SPIN_INTENT, EventRouter
from dreidel.services.game_table import GameTable
from dreidel.services.rate_limit_service import rate_limit_service
from dreidel.services.stats_service import StatsStore

logger = logging.getLogger(__name__)

sio = socketio.AsyncServer(async_mode="asgi", cors_allowed_origins="*")

settings = get_settings()

game_table = GameTable(
    starting_coins=settings.starting_coins,
    entry_contribution=settings.entry_contribution,
)
registry = ConnectionRegistry(game_table)
gateway = BroadcastGateway(sio, registry)
stats_store = StatsStore() if settings.stats_enabled else None
router = EventRouter(
    game_table,
    gateway,
    stats_store=stats_store,
    reset_delay_seconds=settings.game_over_reset_seconds,
)


def _extract_client_ip_from_environ(environ: dict) -> str:
    forwarded_for = environ.get("HTTP_X_FORWARDED_FOR", "")
    if isinstance(forwarded_for, str) and forwarded_for.strip():
        return forwarded_for.split(",")[0].strip()
    real_ip = environ.get("HTTP_X_REAL_IP", "")
    if isinstance(real_ip, str) and real_ip.strip():
        return real_ip.strip()
    remote = environ.get("REMOTE_ADDR", "")
    if isinstance(remote, str) and remote.strip():
        return remote.strip()
    return "unknown"


def _socket_rate_limit_key(scope: str, identifier: str) -> str:
    return f"ws:{scope}:{identifier or 'unknown'}"


def _is_socket_connect_allowed(client_ip: str) -> bool:
    if not settings.rate_limit_enabled:
        return True
    decision = rate_limit_service.check(
        _socket_rate_limit_key("connect", client_ip),
        limit=settings.websocket_connect_limit,
        window_seconds=settings.websocket_connect_window_seconds,
    )
    return decision.allowed


def _is_socket_event_allowed(identity: Identity, event_name: str) -> bool:
    if not settings.rate_limit_enabled:
        return True
    decision = rate_limit_service.check(
        _socket_rate_limit_key(f"event:{event_name}", identity.id),
        limit=settings.websocket_event_limit,
        window_seconds=settings.websocket_event_window_seconds,
    )
    return decision.allowed


async def _socket_rate_limited_payload(sid: str, event_name: str) -> dict:
    await sio.emit(
        "rate_limited",
        {"event": event_name, "message": "Too many requests. Slow down."},
        room=sid,
    )
    return {"ok": False, "error": "rate limit exceeded"}


def _resolve_token(auth: dict | None, environ: dict) -> str | None:
    token = strip_bearer(auth.get("token")) if isinstance(auth, dict) else None
    if not token and settings.websocket_allow_cookie_token:
        token = token_from_cookie_header(environ.get("HTTP_COOKIE"), settings.session_cookie_name)
    return token


async def _handle_intent(sid: str, intent: str) -> dict:
    identity = registry.identity_for(sid)
    if not identity:
        return {"ok": False, "error": "unauthorized"}
    if not _is_socket_event_allowed(identity, intent):
        return await _socket_rate_limited_payload(sid, intent)

    if await router.dispatch(intent, identity):
        return {"ok": True}
    return {"ok": False}


@sio.event
async def connect(sid: str, environ: dict, auth: dict | None = None) -> bool:
    client_ip = _extract_client_ip_from_environ(environ)
    if not _is_socket_connect_allowed(client_ip):
        logger.info("Refusing connection %s from %s: rate limited", sid, client_ip)
        return False

    identity = identity_from_token(_resolve_token(auth, environ))
    if not identity:
        logger.info("Refusing unauthenticated connection %s from %s", sid, client_ip)
        return False

    seated = registry.on_connect(identity, sid)
    await sio.emit(
        "system",
        {
            "message": "connected",
            "user_id": identity.id,
            "username": identity.name,
            "seated": seated,
            "reset_seconds": settings.game_over_reset_seconds,
        },
        room=sid,
    )
    await gateway.broadcast_state(game_table.snapshot())
    return True


@sio.event
async def disconnect(sid: str, reason: str | None = None) -> None:
    identity = registry.on_disconnect(sid)
    if not identity:
        return
    logger.info("Connection %s for %s closed (%s)", sid, identity.id, reason or "client")
    await gateway.broadcast_state(game_table.snapshot())


@sio.event
async def spin(sid: str, *args) -> dict:
    return await _handle_intent(sid, SPIN_INTENT)


@sio.event
async def restart(sid: str, *args) -> dict:
    return await _handle_intent(sid, RESTART_INTENT)


@sio.event
async def sync_state(sid: str, *args) -> dict:
    if not registry.identity_for(sid):
        return {"ok": False, "error": "unauthorized"}
    snapshot = game_table.snapshot()
    await gateway.send_state(sid, snapshot)
    return {"ok": True, "state": serialize_snapshot(snapshot)}


@sio.on("*")
async def any_event(event: str, sid: str, *args) -> None:
    identity = registry.identity_for(sid)
    if identity:
        await router.dispatch(event, identity)


async def shutdown_realtime() -> None:
    await router.shutdown()


def build_socket_app(api_app) -> socketio.ASGIApp:
    return socketio.ASGIApp(sio, other_asgi_app=api_app, socketio_path="socket.io")
