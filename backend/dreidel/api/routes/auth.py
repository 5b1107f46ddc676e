from fastapi import APIRouter, Depends, Response, status

from dreidel.api.deps import get_optional_identity
from dreidel.core.config import get_settings
from dreidel.core.security import Identity
from dreidel.schemas.auth import SessionRead, SessionUserRead

router = APIRouter()


@router.get("/session", response_model=SessionRead)
def read_session(identity: Identity | None = Depends(get_optional_identity)) -> SessionRead:
    if identity is None:
        return SessionRead(user=None)
    return SessionRead(user=SessionUserRead(id=identity.id, name=identity.name))


@router.post("/logout", status_code=status.HTTP_204_NO_CONTENT)
def logout(response: Response) -> None:
    response.delete_cookie(get_settings().session_cookie_name)
