from typing import List, Optional
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import AnyUrl, Field, field_validator


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables or .env.
    """
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"  # Ignore extra fields in .env file
    )

    # -------------------------
    # Database
    # -------------------------
    DATABASE_URL: AnyUrl

    # -------------------------
    # Platform Auth (bearer tokens are issued by the hosted auth service)
    # -------------------------
    JWT_SECRET: str = Field(
        default="change-me",
        description="Shared secret used by the auth platform to sign access tokens"
    )
    JWT_AUDIENCE: Optional[str] = Field(
        default="authenticated",
        description="Expected 'aud' claim (None disables the audience check)"
    )
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # -------------------------
    # Application
    # -------------------------
    PROJECT_NAME: str = "Searchmatic API"
    API_V1_PREFIX: str = "/api/v1"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    TIMEZONE: str = "UTC"

    CORS_ORIGINS: List[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    SQLALCHEMY_ECHO: bool = False
    DB_POOL_MIN_SIZE: Optional[int] = None
    DB_POOL_MAX_SIZE: Optional[int] = None

    # Runs app.db.migrations.CORE_MIGRATIONS during startup
    APPLY_MIGRATIONS_ON_STARTUP: bool = False

    # =========================================================
    # LLM Configuration (Google Gemini)
    # =========================================================
    # Get your API key at: https://aistudio.google.com/apikey
    # =========================================================

    GEMINI_API_KEY: Optional[str] = Field(
        default=None,
        description="Google Gemini API key"
    )

    GEMINI_MODEL: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model to use for chat"
    )

    # Maximum tokens for LLM response
    LLM_MAX_TOKENS: int = Field(
        default=1000,
        ge=100,
        le=8192,
        description="Maximum tokens in LLM response"
    )

    # Temperature (0 = deterministic, 1 = creative)
    LLM_TEMPERATURE: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="LLM temperature for response generation"
    )

    # =========================================================
    # Exports
    # =========================================================
    EXPORT_DEFAULT_FIELDS: List[str] = Field(
        default_factory=lambda: [
            "id", "title", "authors", "journal",
            "publication_date", "doi", "screening_decision",
        ],
        description="Article fields included when an export request names none"
    )

    @field_validator("ALGORITHM")
    def validate_algorithm(cls, v):
        if not v or not isinstance(v, str):
            raise ValueError("ALGORITHM must be a non-empty string.")
        return v

    @field_validator("LOG_LEVEL")
    def validate_log_level(cls, v):
        """Ensure log level is one the logging module understands."""
        allowed = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in allowed:
            raise ValueError(f"LOG_LEVEL must be one of: {allowed}")
        return v.upper()


settings = Settings()
