from contextlib import asynccontextmanager
import logging
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pymongo import MongoClient

from config import Settings, load_settings
from database import connect, ensure_indexes
from errors import register_error_handlers
from logging_setup import configure_logging
from payments import router as payments_router
from registration import router as registration_router
from trading import router as trading_router
from uploads import FileStore

logger = logging.getLogger(__name__)


def create_app(settings: Optional[Settings] = None, mongo_client: Optional[MongoClient] = None) -> FastAPI:
    """Build the application with its database handle and file store.

    Args:
        settings: Defaults to settings read from the environment.
        mongo_client: Client to use instead of connecting to ``database_url``.
    """
    settings = settings or load_settings()
    configure_logging(level=settings.log_level)

    files = FileStore(settings.upload_dir)
    files.ensure_directories()
    db = connect(settings.database_url, settings.database_name,
                 client=mongo_client, timeout_ms=settings.mongo_timeout_ms)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # A database outage is logged, the server still starts
        try:
            ensure_indexes(db)
            logger.info("MongoDB connected (%s)", settings.database_name)
        except Exception:
            logger.exception("MongoDB connection error")
        yield
        db.client.close()

    app = FastAPI(title="Registration & Payments API", lifespan=lifespan)
    app.state.db = db
    app.state.files = files
    app.state.settings = settings

    # Browsers refuse credentials with a wildcard origin
    wildcard = "*" in settings.cors_origins
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if wildcard else settings.cors_origins,
        allow_credentials=not wildcard,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    register_error_handlers(app)

    app.include_router(registration_router)
    app.include_router(payments_router)
    app.include_router(trading_router)
    app.mount("/uploads", StaticFiles(directory=settings.upload_dir), name="uploads")

    @app.get("/")
    def read_root():
        return {"success": True, "message": "Registration API running"}

    @app.get("/test")
    def test_database(request: Request):
        current: Settings = request.app.state.settings
        db = request.app.state.db
        status = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if current.database_url else "❌ Not Set",
            "database_name": current.database_name,
            "connection_status": "Not Connected",
            "collections": [],
        }
        try:
            status["collections"] = db.list_collection_names()[:10]
            status["database"] = "✅ Connected & Working"
            status["connection_status"] = "Connected"
        except Exception as e:
            status["database"] = f"❌ Error: {str(e)[:80]}"
        return status

    return app


if __name__ == "__main__":
    import uvicorn
    port = load_settings().port
    uvicorn.run("main:create_app", factory=True, host="0.0.0.0", port=port)
