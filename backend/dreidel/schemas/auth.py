from pydantic import BaseModel


class SessionUserRead(BaseModel):
    id: str
    name: str


class SessionRead(BaseModel):
    user: SessionUserRead | None = None
