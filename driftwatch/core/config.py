from pydantic_settings import BaseSettings
from pydantic import AliasChoices, ConfigDict, computed_field, Field
from typing import Optional


class Settings(BaseSettings):
    model_config = ConfigDict(extra="allow", env_file=".env", case_sensitive=True)

    DEBUG: bool = False
    PROJECT_NAME: str = "DriftWatch"
    VERSION: str = "0.1.0"
    API_V1_STR: str = "/api"
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str = "sqlite:///./drift_history.db"

    # Audit inputs
    POLICIES_DIR: str = Field(
        default="./policies",
        description="Directory holding one YAML policy document per resource"
    )
    LIVE_STATE_PATH: str = Field(
        default="./live-state.json",
        description="JSON file with the observed rules of every resource"
    )
    EXPORT_DIR: str = Field(
        default=".",
        description="Directory where CSV exports of the audit history are written"
    )
    HISTORY_DEFAULT_LIMIT: int = Field(
        default=10,
        description="Number of events shown by --history when no count is given"
    )

    # Drift Detection settings
    STRICT_MATCHING: bool = Field(
        default=False,
        description="Match rules on id, port and protocol instead of id only"
    )

    # Notification Settings
    DRIFT_ALERT_ENABLED: bool = True
    DRIFT_ALERT_WEBHOOK: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("DRIFT_ALERT_WEBHOOK", "SLACK_WEBHOOK_URL"),
        description="Slack compatible webhook URL for drift alerts"
    )
    DRIFT_ALERT_TIMEOUT: float = 10.0

    @computed_field
    @property
    def ASYNC_DATABASE_URL(self) -> str:
        """Database URL with the async sqlite driver"""
        return async_database_url(self.DATABASE_URL)


def async_database_url(url: str) -> str:
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url


settings = Settings()
