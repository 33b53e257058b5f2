from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Optional


class Settings(BaseSettings):
    """
    Application settings managed via Pydantic Settings.
    Reads variables from environment and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # --- Application Meta ---
    APP_NAME: str = "DataVault Pro Analytics Platform"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_DIR: str = "logs"

    # --- Assistant Configuration ---
    # Without a key the chat falls back to the local mock assistant
    GROQ_API_KEY: Optional[str] = Field(None, description="API Key for Groq Cloud")

    DEFAULT_MODEL: str = "llama-3.3-70b-versatile"
    TEMPERATURE: float = 0.7
    MAX_TOKENS: int = 1000

    # --- Server Configuration ---
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    # --- Data Ingestion Limits ---
    MAX_UPLOAD_SIZE_MB: int = 10

    # --- Timers ---
    REPORT_DELAY_SECONDS: float = 2.0
    MONITOR_INTERVAL_SECONDS: float = 3.0
    ERROR_BANNER_SECONDS: float = 5.0

    @field_validator("GROQ_API_KEY")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        """
        Normalises the API key.
        Returns None if missing or blank so the mock assistant is used.
        """
        if v is None:
            return v
        v = v.strip()
        if not v:
            return None
        return v

    @property
    def assistant_enabled(self) -> bool:
        return bool(self.GROQ_API_KEY)


settings = Settings()
