from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional
import logging

from database import Database, Settings, get_settings
from core.scheduler import EventStatusScheduler
from api import events, evaluations, registrations, teams


def create_app(settings: Optional[Settings] = None, database: Optional[Database] = None) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s"
    )

    database = database or Database(settings)
    scheduler = EventStatusScheduler(
        database,
        interval_seconds=settings.scheduler_interval_seconds
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: 建立資料庫表，啟動狀態排程
        database.create_all()
        if settings.scheduler_enabled:
            scheduler.start()
        yield
        # Shutdown: 停止排程、釋放連線
        scheduler.stop(timeout=5)
        database.dispose()

    app = FastAPI(
        title="Ensemble Events API",
        description="Event lifecycle, team membership, evaluations and registrations",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.settings = settings
    app.state.database = database
    app.state.scheduler = scheduler

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure this properly in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(events.router)
    app.include_router(teams.router)
    app.include_router(evaluations.router)
    app.include_router(registrations.router)

    @app.get("/")
    def root():
        return {"message": "Ensemble Events API", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "healthy", "scheduler_running": scheduler.running}

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(create_app(), host="0.0.0.0", port=8000)
