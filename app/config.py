import logging
import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel

# Load environment variables
load_dotenv()

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class Settings(BaseModel):
    github_token: Optional[str] = None
    github_user: Optional[str] = None
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash"
    student_secret: Optional[str] = None
    port: int = 8000
    settle_delay_seconds: float = 5.0
    task_store_path: Optional[str] = None
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        """Read settings from the process environment (after .env is loaded)."""
        values = {
            "github_token": os.getenv("GITHUB_TOKEN"),
            "github_user": os.getenv("GITHUB_USER"),
            "gemini_api_key": os.getenv("GEMINI_API_KEY"),
            "gemini_model": os.getenv("GEMINI_MODEL"),
            "student_secret": os.getenv("STUDENT_SECRET"),
            "port": os.getenv("PORT"),
            "settle_delay_seconds": os.getenv("SETTLE_DELAY_SECONDS"),
            "task_store_path": os.getenv("TASK_STORE_PATH"),
            "log_level": os.getenv("LOG_LEVEL"),
        }
        return cls(**{k: v for k, v in values.items() if v not in (None, "")})


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
