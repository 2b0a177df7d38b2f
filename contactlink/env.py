import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


def load_env(env_path: Optional[Path] = None) -> None:
    """Load .env from project root if present. Existing variables win."""
    env_path = env_path or Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


@dataclass
class Settings:
    db_path: Path
    log_level: str
    log_dir: Path
    log_to_file: bool


def load_settings() -> Settings:
    """Read settings from the environment (call load_env first)."""
    return Settings(
        db_path=Path(os.getenv("CONTACTLINK_DB_PATH", "data/contacts.db")),
        log_level=os.getenv("CONTACTLINK_LOG_LEVEL", "INFO").upper(),
        log_dir=Path(os.getenv("CONTACTLINK_LOG_DIR", "logs")),
        log_to_file=_env_flag("CONTACTLINK_LOG_TO_FILE", True),
    )
