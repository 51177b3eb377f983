import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, Field

from noviq.errors import ConfigurationError

load_dotenv()


class StageProfile(BaseModel):
    """Model identity and response budget used for one stage."""

    model: str
    max_tokens: int = Field(..., gt=0)


class Settings(BaseModel):
    anthropic_api_key: Optional[str] = None
    anthropic_base_url: str = "https://api.anthropic.com/v1/messages"
    anthropic_version: str = "2023-06-01"
    http_timeout: float = 120.0

    # feedback and questions share the small profile
    conversation: StageProfile = StageProfile(model="claude-3-haiku-20240307", max_tokens=1024)
    analysis: StageProfile = StageProfile(model="claude-3-sonnet-20240229", max_tokens=4000)

    database_url: Optional[str] = None
    database_name: Optional[str] = None

    api_url: str = "http://localhost:8000"
    session_dir: str = ".noviq"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            anthropic_api_key=os.getenv("CLAUDE_KEY") or os.getenv("ANTHROPIC_API_KEY"),
            anthropic_base_url=os.getenv("ANTHROPIC_BASE_URL", defaults.anthropic_base_url),
            anthropic_version=os.getenv("ANTHROPIC_VERSION", defaults.anthropic_version),
            http_timeout=float(os.getenv("NOVIQ_HTTP_TIMEOUT", defaults.http_timeout)),
            conversation=StageProfile(
                model=os.getenv("NOVIQ_FEEDBACK_MODEL", defaults.conversation.model),
                max_tokens=int(os.getenv("NOVIQ_FEEDBACK_MAX_TOKENS", defaults.conversation.max_tokens)),
            ),
            analysis=StageProfile(
                model=os.getenv("NOVIQ_ANALYSIS_MODEL", defaults.analysis.model),
                max_tokens=int(os.getenv("NOVIQ_ANALYSIS_MAX_TOKENS", defaults.analysis.max_tokens)),
            ),
            database_url=os.getenv("DATABASE_URL"),
            database_name=os.getenv("DATABASE_NAME"),
            api_url=os.getenv("NOVIQ_API_URL", defaults.api_url),
            session_dir=os.getenv("NOVIQ_SESSION_DIR", defaults.session_dir),
            log_level=os.getenv("LOG_LEVEL", defaults.log_level),
        )

    def require_api_key(self) -> str:
        if not self.anthropic_api_key:
            raise ConfigurationError("CLAUDE_KEY environment variable is not set.")
        return self.anthropic_api_key

    def require_database_url(self) -> str:
        if not self.database_url:
            raise ConfigurationError("DATABASE_URL environment variable is not set.")
        return self.database_url
