"""Project paths, config/.env loading, and SQLAlchemy session management."""

import copy
import os
from contextlib import contextmanager
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from tasteradar.data.models import Base

CONFIG_ENV_VAR = "TASTERADAR_CONFIG"

# Values used when config.yaml omits a key.
DEFAULT_CONFIG: dict[str, Any] = {
    "database": {"path": "data/tasteradar.db"},
    "fingerprint": {},
    "recommendations": {},
    "rate_limits": {},
    "musicbrainz": {},
}

_engine = None
_SessionFactory = None


def get_project_root() -> Path:
    """Find project root by walking up to pyproject.toml."""
    current = Path(__file__).resolve()
    for parent in [current, *current.parents]:
        if (parent / "pyproject.toml").exists():
            return parent
    raise FileNotFoundError("Could not find project root (no pyproject.toml found)")


def get_config_path() -> Path:
    """config.yaml at the project root, unless TASTERADAR_CONFIG points elsewhere."""
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override)
    return get_project_root() / "config.yaml"


def load_config() -> dict[str, Any]:
    """Load config.yaml merged over DEFAULT_CONFIG (one level deep)."""
    config_path = get_config_path()
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    with open(config_path) as f:
        loaded = yaml.safe_load(f) or {}

    config = copy.deepcopy(DEFAULT_CONFIG)
    for section, values in loaded.items():
        if isinstance(values, dict) and isinstance(config.get(section), dict):
            config[section].update(values)
        else:
            config[section] = values
    return config


def get_db_path() -> Path:
    """Get absolute path to the database file."""
    db_path = Path(load_config()["database"]["path"])
    if db_path.is_absolute():
        return db_path
    return get_project_root() / db_path


def _init_engine():
    """Initialize the SQLAlchemy engine and session factory."""
    global _engine, _SessionFactory
    if _engine is None:
        db_path = get_db_path()
        db_path.parent.mkdir(parents=True, exist_ok=True)
        _engine = create_engine(f"sqlite:///{db_path}", echo=False)
        _SessionFactory = sessionmaker(bind=_engine)


@contextmanager
def get_session():
    """Context manager that yields a SQLAlchemy session with auto-commit/rollback."""
    _init_engine()
    session: Session = _SessionFactory()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def init_db():
    """Create all tables in the database."""
    _init_engine()
    Base.metadata.create_all(_engine)


def load_env():
    """Load .env file from project root."""
    load_dotenv(get_project_root() / ".env")
