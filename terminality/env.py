"""
Utilities for loading environment variables from the project .env file.
"""
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


@lru_cache(maxsize=1)
def load_env() -> Path:
    """
    Load environment variables from the repository-level .env file once.
    Returns the path to the .env that was attempted.
    """
    root = Path(__file__).resolve().parents[1]
    dotenv_path = root / ".env"
    # existing environment wins so command lines and tests can override .env
    load_dotenv(dotenv_path=dotenv_path, override=False)
    return dotenv_path


def env_str(name: str, default: Optional[str] = None) -> Optional[str]:
    load_env()
    value = os.getenv(name)
    return value if value else default


def env_float(name: str, default: float) -> float:
    raw = env_str(name)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def env_int(name: str, default: int) -> int:
    raw = env_str(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default
