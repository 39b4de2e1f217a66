# Environment loading helpers.
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv


# Path of the repo-root .env file.
def default_env_path() -> Path:
    return Path(__file__).resolve().parents[2] / ".env"

# Load a .env file into the process environment without overriding existing values.
def load_environment(dotenv_path: Optional[str] = None) -> bool:
    path = dotenv_path or default_env_path()
    return load_dotenv(dotenv_path=path, override=False)
