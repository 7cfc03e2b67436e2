"""Pod service configuration via environment variables."""

from datetime import timedelta

from pydantic import Field
from pydantic_settings import BaseSettings


class PodServerSettings(BaseSettings):
    model_config = {"env_prefix": "POD_"}

    code_length: int = Field(default=6, ge=4, le=12)
    session_ttl_seconds: int = Field(default=7 * 24 * 3600, ge=60)  # 7 days default, min 60s
    reaper_interval_seconds: int = Field(default=300, ge=1)
    log_dir: str | None = "backend/logs/pods"
    data_dir: str = Field(default="backend/data/sessions", min_length=1)
    persist_sessions: bool = True

    @property
    def session_ttl(self) -> timedelta:
        return timedelta(seconds=self.session_ttl_seconds)
