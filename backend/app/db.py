import os

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

Base = declarative_base()
engine = None
SessionLocal = None

DEFAULT_DATABASE_URL = "sqlite:///./shoplist.db"


def _read_int_env(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer") from exc


def BuildConnectionUrl() -> str:
    return os.getenv("DATABASE_URL", "").strip() or DEFAULT_DATABASE_URL


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_pre_ping": True,
        "pool_size": _read_int_env("SQLALCHEMY_POOL_SIZE", 10),
        "max_overflow": _read_int_env("SQLALCHEMY_MAX_OVERFLOW", 20),
        "pool_timeout": _read_int_env("SQLALCHEMY_POOL_TIMEOUT", 60),
    }


def _ensure_engine():
    global engine, SessionLocal
    if engine is None:
        url = BuildConnectionUrl()
        engine = create_engine(url, **_engine_options(url))
        SessionLocal = sessionmaker(bind=engine, autocommit=False, autoflush=False)


def GetEngine():
    _ensure_engine()
    return engine


def GetDb():
    if SessionLocal is None:
        _ensure_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
