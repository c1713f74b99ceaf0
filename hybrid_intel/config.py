"""Hybrid Intel configuration — loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    model_config = {"env_prefix": "HYBRID_INTEL_", "env_file": ".env", "extra": "ignore"}

    # Provider API keys (empty string means "not configured")
    google_api_key: str = ""
    perplexity_api_key: str = ""

    # Models
    internal_model: str = "gemini-2.0-flash"
    synthesis_model: str = "gemini-2.0-flash"
    web_model: str = "sonar"

    # Timeouts (seconds)
    synthesis_timeout: float = 15.0
    provider_timeout: float = 60.0

    synthesis_temperature: float = 0.3
    web_history_turns: int = 4

    # Database
    database_url: str = "hybrid_intel.db"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: list[str] = ["http://localhost:5173"]
    log_level: str = "INFO"


settings = Settings()
