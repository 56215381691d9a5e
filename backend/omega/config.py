"""Application configuration using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Omega Chat"
    environment: str = "development"
    log_level: str = "debug"

    # Database
    database_url: str = "sqlite+aiosqlite:///./omega.db"
    database_echo: bool = False

    # Completion providers
    openai_api_key: str = ""
    google_api_key: str = ""

    # Chat defaults
    default_model: str = "gpt-4o"
    default_temperature: float = 0.7
    title_model: str = "gpt-4o"
    max_steps: int = 5
    advanced_max_steps: int = 10

    # Web Search
    tavily_api_key: str = ""

    # Client sync
    api_base_url: str = "http://localhost:8000/api"
    poll_interval: float = 5.0

    # CORS
    frontend_url: str = "http://localhost:3000"


settings = Settings()
