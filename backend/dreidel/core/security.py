from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from http.cookies import CookieError, SimpleCookie
from typing import Any
from uuid import uuid4

from jose import JWTError, jwt

from dreidel.core.config import get_settings

ALGORITHM = "HS256"


@dataclass(frozen=True)
class Identity:
    """A player identity resolved by the sign-on provider."""

    id: str
    name: str


def create_access_token(user_id: str, name: str | None = None) -> str:
    settings = get_settings()
    issued_at = datetime.now(timezone.utc)
    expire = issued_at + timedelta(minutes=settings.access_token_expire_minutes)
    payload: dict[str, Any] = {
        "sub": user_id,
        "exp": expire,
        "iat": issued_at,
        "jti": uuid4().hex,
    }
    if name:
        payload["name"] = name
    return jwt.encode(payload, settings.secret_key, algorithm=ALGORITHM)


def decode_access_token_payload(token: str) -> dict[str, Any] | None:
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[ALGORITHM])
    except JWTError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def identity_from_token(token: str | None) -> Identity | None:
    if not token:
        return None
    payload = decode_access_token_payload(token)
    if not payload:
        return None
    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject.strip():
        return None
    name = payload.get("name")
    if not isinstance(name, str) or not name.strip():
        name = subject
    return Identity(id=subject.strip(), name=name.strip()[:60])


def strip_bearer(token: Any) -> str | None:
    if isinstance(token, str) and token.lower().startswith("bearer "):
        token = token.split(" ", 1)[1]
    return token.strip() if isinstance(token, str) and token.strip() else None


def token_from_cookie_header(cookie_header: str | None, cookie_name: str) -> str | None:
    if not cookie_header:
        return None
    cookie = SimpleCookie()
    try:
        cookie.load(cookie_header)
    except CookieError:
        return None
    morsel = cookie.get(cookie_name)
    return strip_bearer(morsel.value) if morsel else None
