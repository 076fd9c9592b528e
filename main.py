from fastapi import FastAPI
from contextlib import asynccontextmanager
from app.core.config import settings
from app.core.db.base import create_all, engine
from app.core.logging import get_logger, setup_logging
from app.apis.auth.main import router as auth_router
from app.apis.quiz.main import router as quiz_router
from app.apis.attempts.main import router as attempts_router
from app.apis.rooms.main import router as rooms_router

import uvicorn
from fastapi.middleware.cors import CORSMiddleware


logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    if settings.app.mode in ("dev", "test"):
        # Production schema is managed by Alembic
        await create_all(engine)
    logger.info("%s %s started (mode=%s)", settings.app.name, settings.app.version, settings.app.mode)
    try:
        yield
    finally:
        await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app.name, version=settings.app.version, lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(auth_router)
    app.include_router(quiz_router)
    app.include_router(attempts_router)
    app.include_router(rooms_router)

    @app.get("/")
    async def root():
        return {
            "status": "ok",
            "app": settings.app.name,
            "version": settings.app.version,
        }

    return app


app = create_app()


if __name__ == "__main__":
    try:
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.app.port,
            reload=not settings.app.is_production,
        )
    except Exception as e:
        logger.error("An error occurred when starting the server: %s", e)
