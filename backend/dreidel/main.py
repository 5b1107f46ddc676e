from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from dreidel.api.routes import router as api_router
from dreidel.core.config import get_settings
from dreidel.db.base import Base
from dreidel.db.migrations import ensure_runtime_schema
from dreidel.db.session import engine
from dreidel.realtime.socket_server import build_socket_app, shutdown_realtime

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(_: FastAPI):
    Base.metadata.create_all(bind=engine)
    ensure_runtime_schema(engine)
    yield
    await shutdown_realtime()


api_app = FastAPI(title=settings.app_name, debug=settings.debug, lifespan=lifespan)
api_app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
api_app.include_router(api_router, prefix=settings.api_prefix)

app = build_socket_app(api_app)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)
