import os
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

DEFAULT_DATABASE_URL = "sqlite:///./data/wallet_sync.db"

_engine: Optional[Engine] = None


def get_engine() -> Engine:
    """Return the process-wide engine, creating it from DATABASE_URL on first use."""
    global _engine
    if _engine is None:
        _engine = create_engine_for_url(get_database_url())
    return _engine


def close_engine():
    global _engine
    if _engine is not None:
        _engine.dispose()
        _engine = None


def create_engine_for_url(url: str) -> Engine:
    """Build an engine; SQLite files get their parent directory created."""
    connect_args = {}
    if url.startswith("sqlite:"):
        # FastAPI runs sync routes on a threadpool
        connect_args = {"check_same_thread": False}
        sp = _sqlite_path(url)
        if sp is not None:
            sp.parent.mkdir(parents=True, exist_ok=True)
            url = "sqlite:///" + sp.as_posix()
    return create_engine(url, future=True, connect_args=connect_args)


def get_database_url() -> str:
    _load_env_from_file()
    return os.getenv("DATABASE_URL") or DEFAULT_DATABASE_URL


def _project_root() -> Path:
    # app/db/sql_connector.py -> project root = parents[2]
    return Path(__file__).resolve().parents[2]


def _sqlite_path(url: str) -> Optional[Path]:
    if not url.startswith("sqlite:///"):
        return None
    p = url[len("sqlite:///"):]
    if not p or p == ":memory:":
        return None
    if p.startswith("/"):
        return Path(p)
    return (_project_root() / p).resolve()


def _load_env_from_file():
    """Fill unset variables from ``.env`` at the project root (KEY=value lines)."""
    env_path = _project_root() / ".env"
    if not env_path.is_file():
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        key, sep, val = line.strip().partition("=")
        key = key.strip()
        if not sep or not key or key.startswith("#"):
            continue
        if not os.environ.get(key):
            os.environ[key] = val.strip().strip("\"'")
