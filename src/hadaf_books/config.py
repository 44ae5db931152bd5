"""
Hadaf Books - Runtime Configuration

Settings come from environment variables, optionally loaded from a ``.env``
file with python-dotenv. The API factory, the launcher and the console all
read the same ``Config`` so a single ``.env`` drives every entry point.

Recognised variables:
    DATABASE_PATH     SQLite file (relative paths resolve against the CWD)
    HOST, PORT        Flask bind address
    SECRET_KEY        Flask secret key
    CORS_ORIGINS      comma separated list of allowed web origins
    SEED_SAMPLE_DATA  "true" seeds demo rows into an empty ledger
    LOG_LEVEL         standard logging level name
    BACKUP_DIR        where start.py keeps database backups
"""

import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

DEFAULT_DB_PATH = Path(__file__).parent / "data" / "hadaf.db"

DEFAULT_CORS_ORIGINS = (
    "http://localhost:5173",
    "http://localhost:5174",
    "http://localhost:3000",
)

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(name)s: %(message)s"


@dataclass
class Config:
    database_path: Path = DEFAULT_DB_PATH
    host: str = "127.0.0.1"
    port: int = 5000
    secret_key: str = "dev-secret-key-change-in-production"
    cors_origins: tuple = DEFAULT_CORS_ORIGINS
    seed_sample_data: bool = False
    log_level: str = "INFO"
    backup_dir: Path | None = None


def _resolve_path(value):
    path = Path(value).expanduser()
    if not path.is_absolute():
        path = Path.cwd() / path
    return path


def _env_flag(name, default=False):
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def load_config(dotenv_path=None):
    """
    Build a Config from the environment.

    Args:
        dotenv_path (str, optional): explicit .env file; defaults to the
            python-dotenv search starting from the working directory

    Returns:
        Config
    """
    load_dotenv(dotenv_path or os.getenv("DOTENV_CONFIG_PATH"))

    database_path = os.getenv("DATABASE_PATH")
    origins = os.getenv("CORS_ORIGINS")
    backup_dir = os.getenv("BACKUP_DIR")

    return Config(
        database_path=_resolve_path(database_path) if database_path else DEFAULT_DB_PATH,
        host=os.getenv("HOST", "127.0.0.1"),
        port=int(os.getenv("PORT", "5000")),
        secret_key=os.getenv("SECRET_KEY", "dev-secret-key-change-in-production"),
        cors_origins=tuple(o.strip() for o in origins.split(",") if o.strip()) if origins else DEFAULT_CORS_ORIGINS,
        seed_sample_data=_env_flag("SEED_SAMPLE_DATA"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        backup_dir=_resolve_path(backup_dir) if backup_dir else None,
    )


def configure_logging(level="INFO"):
    """Install the root handler once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(getattr(logging, str(level).upper(), logging.INFO))
