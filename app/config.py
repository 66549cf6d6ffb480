"""Application settings loaded from environment variables."""
import os
from functools import lru_cache
from typing import Optional

from dotenv import load_dotenv

load_dotenv()


class Settings:
    """
    Central configuration for the chat backend.

    Values are read once from the environment (and a local .env file).
    """

    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./rooms.db")
    SQL_ECHO: bool = os.getenv("SQL_ECHO", "0") == "1"
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")

    OPENAI_API_KEY: Optional[str] = os.getenv("OPENAI_API_KEY")
    OPENAI_MODEL: str = os.getenv("OPENAI_MODEL", "gpt-3.5-turbo")
    OPENAI_TIMEOUT: float = float(os.getenv("OPENAI_TIMEOUT", "30"))

    # Reserved identity that authors assistant replies
    ASSISTANT_USER_ID: int = int(os.getenv("ASSISTANT_USER_ID", "0"))
    ASSISTANT_USERNAME: str = os.getenv("ASSISTANT_USERNAME", "assistant")
    ASSISTANT_AVATAR_URL: str = os.getenv("ASSISTANT_AVATAR_URL", "")

    LOBBY_PROMPT: Optional[str] = os.getenv("LOBBY_PROMPT")

    def require(self, name: str) -> str:
        """Return a mandatory setting or fail with the missing variable name."""
        value = getattr(self, name, None)
        if value is None or value == "":
            raise RuntimeError(f"Missing env variable: {name}")
        return value


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
