import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from branchtale.config import settings
from branchtale.db.bootstrap import init_db
from branchtale.modules.mechanics.errors import EngineError
from branchtale.modules.player.locks import SessionLockRegistry
from branchtale.modules.player.router import router as player_router
from branchtale.modules.story.router import router as story_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def _lifespan(_app: FastAPI):
    logging.basicConfig(level=settings.log_level)
    init_db()
    yield


async def _engine_error_handler(_request: Request, exc: EngineError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("engine error %s: %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.to_detail()})


def create_app() -> FastAPI:
    app = FastAPI(title=settings.app_name, lifespan=_lifespan)
    app.state.session_locks = SessionLockRegistry(timeout_s=settings.session_lock_timeout_s)
    app.add_exception_handler(EngineError, _engine_error_handler)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    app.include_router(player_router)
    app.include_router(story_router)
    return app


app = create_app()
