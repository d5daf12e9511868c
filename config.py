"""
Application Settings

Read from environment variables (and a local .env file) once at startup.
"""

import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field


class Settings(BaseModel):
    database_url: str = Field("mongodb://localhost:27017", description="MongoDB connection string")
    database_name: str = Field("registrations", description="Database holding all collections")
    port: int = Field(5000, description="HTTP listen port")
    upload_dir: str = Field("uploads", description="Root directory for uploaded files")
    cors_origins: List[str] = Field(default_factory=lambda: ["*"], description="Allowed CORS origins")
    log_level: str = Field("INFO", description="DEBUG, INFO, WARNING or ERROR")
    mongo_timeout_ms: int = Field(5000, description="Server selection timeout for the driver")


def load_settings() -> Settings:
    # Load environment variables from .env file
    load_dotenv()

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    return Settings(
        database_url=os.getenv("DATABASE_URL", "mongodb://localhost:27017"),
        database_name=os.getenv("DATABASE_NAME", "registrations"),
        port=int(os.getenv("PORT", 5000)),
        upload_dir=os.getenv("UPLOAD_DIR", "uploads"),
        cors_origins=origins or ["*"],
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        mongo_timeout_ms=int(os.getenv("MONGO_TIMEOUT_MS", 5000)),
    )
