"""Application settings loaded from environment variables."""

from functools import lru_cache
from typing import Annotated, Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

DEFAULT_COMPLETED_STATUS_NAMES = ["Done", "Closed", "Completed"]
DEFAULT_BACKLOG_STATUS_NAMES = ["To Do", "Open", "Backlog"]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
    )

    gemini_api_key: str | None = Field(
        None,
        alias="GEMINI_API_KEY",
        description="Optional when DRY_RUN=true; required for live planner access.",
    )
    gemini_model: str = Field("gemini-2.5-flash-lite", alias="GEMINI_MODEL")
    gemini_base_url: str = Field(
        "https://generativelanguage.googleapis.com/v1beta", alias="GEMINI_BASE_URL"
    )
    gemini_temperature: float = Field(0.7, alias="GEMINI_TEMPERATURE")
    gemini_max_output_tokens: int = Field(4096, alias="GEMINI_MAX_OUTPUT_TOKENS")
    planner_request_timeout: float = Field(30.0, alias="PLANNER_REQUEST_TIMEOUT")
    planner_max_retries: int = Field(3, ge=1, alias="PLANNER_MAX_RETRIES")
    planner_backoff_base_seconds: float = Field(1.0, ge=0.0, alias="PLANNER_BACKOFF_BASE_SECONDS")
    planning_deadline_seconds: float = Field(60.0, gt=0.0, alias="PLANNING_DEADLINE_SECONDS")
    completed_status_names: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_COMPLETED_STATUS_NAMES),
        alias="COMPLETED_STATUS_NAMES",
    )
    backlog_status_names: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: list(DEFAULT_BACKLOG_STATUS_NAMES),
        alias="BACKLOG_STATUS_NAMES",
    )
    prompt_backlog_limit: int = Field(50, ge=1, alias="PROMPT_BACKLOG_LIMIT")
    historical_sprint_limit: int = Field(10, ge=1, alias="HISTORICAL_SPRINT_LIMIT")
    project_history_limit: int = Field(15, ge=1, alias="PROJECT_HISTORY_LIMIT")
    completed_points_include_all_issues: bool = Field(True, alias="COMPLETED_POINTS_INCLUDE_ALL_ISSUES")
    fallback_on_failure: bool = Field(False, alias="FALLBACK_ON_FAILURE")
    dry_run: bool = Field(False, alias="DRY_RUN")
    database_url: str | None = Field("sqlite+aiosqlite:///./data/sprint_planner.db", alias="DATABASE_URL")
    database_echo: bool = Field(False, alias="DATABASE_ECHO")
    log_format: Literal["json", "text"] = Field("json", alias="LOG_FORMAT")
    log_level: str = Field("INFO", alias="LOG_LEVEL")

    @staticmethod
    def _parse_csv_list(value: str | list[str] | None) -> list[str] | None:
        if value is None or value == "":
            return None
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("completed_status_names", mode="before")
    @classmethod
    def _parse_completed_statuses(cls, value):
        return cls._parse_csv_list(value) or list(DEFAULT_COMPLETED_STATUS_NAMES)

    @field_validator("backlog_status_names", mode="before")
    @classmethod
    def _parse_backlog_statuses(cls, value):
        return cls._parse_csv_list(value) or list(DEFAULT_BACKLOG_STATUS_NAMES)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
