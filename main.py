from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from typing import Optional

from database import get_settings
from core.sql_store import create_store
from core.store import RoomStore
from api import rooms, submissions


def create_app(store: Optional[RoomStore] = None) -> FastAPI:
    """
    建立 FastAPI app

    store 沒有傳入時，在 lifespan 啟動時依 Settings 建立一次，關閉時釋放
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: 建立 Room Store（每個 process 一個）
        owns_store = store is None
        app.state.store = create_store(get_settings()) if owns_store else store
        yield
        # Shutdown: 只關閉自己建立的 store
        if owns_store:
            app.state.store.close()

    app = FastAPI(
        title="Absurd Room API",
        description="Room/round coordinator for a host-judged party game",
        version="1.0.0",
        lifespan=lifespan
    )

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],  # Configure this properly in production
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Include routers
    app.include_router(rooms.router)
    app.include_router(submissions.router)

    @app.get("/")
    def root():
        return {"message": "Absurd Room API", "status": "ok"}

    @app.get("/health")
    def health():
        return {"status": "healthy"}

    return app


app = create_app()


if __name__ == "__main__":
    import logging
    import uvicorn

    logging.basicConfig(level=get_settings().log_level)
    uvicorn.run(app, host="0.0.0.0", port=8000)
