from pathlib import Path
from pydantic import BaseModel, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Any, Literal
import orjson

DatabaseType = Literal["postgres", "mysql", "sqlite"]


class DatabaseConfig(BaseModel):
    type: DatabaseType
    # Connection string, or a file path for SQLite
    url: str


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore", frozen=True)

    ENV: str = "dev"
    PORT: int = 4000
    WEBHOOK_SECRET: str = ""
    DATABASE_TYPE: DatabaseType = "postgres"
    DATABASE_URL: str = ""
    TABLE_NAME: str = "veilmail_webhook_events"
    LOG_JSON: bool = True
    LOG_LEVEL: str = "INFO"
    # Mounts /metrics when enabled
    METRICS_ENABLED: bool = False

    @model_validator(mode="after")
    def _require_secret_and_url(self) -> "Settings":
        if not self.WEBHOOK_SECRET:
            raise ValueError("WEBHOOK_SECRET is required (config file 'secret' or environment)")
        if not self.DATABASE_URL:
            raise ValueError("DATABASE_URL is required (config file 'database.url' or environment)")
        return self

    @property
    def database(self) -> DatabaseConfig:
        return DatabaseConfig(type=self.DATABASE_TYPE, url=self.DATABASE_URL)


def _settings_from_file(config_path: str | Path) -> dict[str, Any]:
    """
    Translate a JSON config file into Settings keyword arguments.

    The file uses the documented shape
    ``{"port", "secret", "database": {"type", "url"}, "tableName"}``;
    absent keys are left to the environment and defaults.
    """
    raw = orjson.loads(Path(config_path).expanduser().read_bytes())
    if not isinstance(raw, dict):
        raise ValueError(f"Config file {config_path} must contain a JSON object")

    overrides: dict[str, Any] = {}
    if raw.get("port") is not None:
        overrides["PORT"] = raw["port"]
    if raw.get("secret"):
        overrides["WEBHOOK_SECRET"] = raw["secret"]
    if raw.get("tableName"):
        overrides["TABLE_NAME"] = raw["tableName"]

    database = raw.get("database") or {}
    if database.get("type"):
        overrides["DATABASE_TYPE"] = database["type"]
    if database.get("url"):
        overrides["DATABASE_URL"] = database["url"]
    return overrides


def load_settings(config_path: str | Path | None = None) -> Settings:
    """
    Resolve settings with precedence: config file > environment > defaults.

    Raises:
        pydantic.ValidationError: If required values are missing or invalid
        OSError: If the config file cannot be read
    """
    if config_path is None:
        return Settings()
    return Settings(**_settings_from_file(config_path))
