# api/memedo/db.py
from urllib.parse import urlparse

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base

from .settings import settings


def _database_url() -> str:
    # Prefer a full DATABASE_URL (Render injects this). Fallback to individual parts for local dev.
    if settings.DATABASE_URL:
        url = settings.DATABASE_URL
        # Render/Heroku hand out postgres://, SQLAlchemy wants postgresql://
        if url.startswith("postgres://"):
            url = url.replace("postgres://", "postgresql://", 1)
        return url
    return (
        f"postgresql://{settings.PGUSER}:{settings.PGPASSWORD}"
        f"@{settings.PGHOST}:{settings.PGPORT}/{settings.PGDATABASE}"
    )


def _connect_args(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"check_same_thread": False}

    # If it's a remote DB (not localhost), enforce SSL (Render Postgres requires it)
    host = urlparse(url).hostname
    if host in {"localhost", "127.0.0.1"} or host is None:
        return {}
    return {"sslmode": "require"}


DATABASE_URL = _database_url()

engine = create_engine(DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args(DATABASE_URL))
SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)
Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
