import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .client import DEFAULT_BASE_URL


def load_env() -> None:
    """Load .env from the working directory if present.
    Values already in the environment win.
    """
    env_path = Path.cwd() / ".env"
    if not env_path.exists():
        return
    load_dotenv(dotenv_path=env_path, override=False)


def hubspot_token(override: Optional[str] = None) -> Optional[str]:
    return override or os.getenv("HUBSPOT_TOKEN")


def hubspot_base_url() -> str:
    return os.getenv("HUBSPOT_BASE_URL") or DEFAULT_BASE_URL
