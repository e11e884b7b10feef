from typing import Literal
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application configuration with environment variable mapping.
    All settings can be defined in .env file or as environment variables.
    """

    # Core settings
    PROJECT_NAME: str = Field(default="Artestofados Bot")
    PROJECT_DESCRIPTION: str = Field(
        default="WhatsApp intake assistant for Artestofados"
    )
    ENVIRONMENT: Literal["dev", "prod"] = Field(default="dev")
    LOG_LEVEL: str = Field(default="INFO")
    LOG_DIR: str = Field(default="logs")
    LOG_TO_FILE: bool = Field(default=True)
    LOG_MASK_PHONES: bool = Field(default=True)
    BACKEND_CORS_ORIGINS: str = Field(default="*")

    # Database
    DATABASE_PATH: str = Field(default="./app.db")
    SQL_ECHO: bool = Field(default=False)

    # Business
    BUSINESS_NAME: str = Field(default="Artestofados")
    BUSINESS_PHONE: str = Field(default="(83) 3241-1234")
    BUSINESS_EMAIL: str = Field(default="contato@artestofados.com.br")

    # Conversation engine
    BOT_MODE: Literal["menu", "ai"] = Field(default="menu")
    FLOW_NAME: Literal["estofados", "classico"] = Field(default="estofados")
    ACCEPT_NUMERIC_SHORTCUTS: bool = Field(default=True)
    REACTIVATION_COMMAND: str = Field(default="#ativar")
    HISTORY_LIMIT: int = Field(default=10)
    AI_MIN_MESSAGES: int = Field(default=3)

    # Pause / housekeeping
    PAUSE_HOURS: float = Field(default=2.0)
    INFLIGHT_RELEASE_SECONDS: float = Field(default=2.0)
    PAUSE_SWEEP_INTERVAL_SECONDS: float = Field(default=600.0)
    SESSION_SWEEP_INTERVAL_SECONDS: float = Field(default=3600.0)
    SESSION_MAX_AGE_HOURS: float = Field(default=24.0)
    CLEANUP_ENABLED: bool = Field(default=True)

    # Collaborator timeouts (seconds)
    PERSISTENCE_TIMEOUT: float = Field(default=10.0)
    CALENDAR_TIMEOUT: float = Field(default=10.0)
    AI_TIMEOUT: float = Field(default=20.0)

    # Transport
    TRANSPORT: Literal["cloud", "zapi"] = Field(default="zapi")
    WHATSAPP_TOKEN: str = Field(default="")
    WHATSAPP_PHONE_NUMBER_ID: str = Field(default="")
    WHATSAPP_VERIFY_TOKEN: str = Field(default="")
    ZAPI_INSTANCE_ID: str = Field(default="")
    ZAPI_TOKEN: str = Field(default="")
    ZAPI_CLIENT_TOKEN: str = Field(default="")

    # OpenAI
    OPENAI_API_KEY: str = Field(default="")
    OPENAI_MODEL: str = Field(default="gpt-4o-mini")
    OPENAI_INTENT_MODEL: str = Field(default="gpt-4o-mini")
    OPENAI_MAX_TOKENS: int = Field(default=500)
    OPENAI_TEMPERATURE: float = Field(default=0.7)
    OPENAI_TIMEOUT: float = Field(default=30.0)
    OPENAI_MAX_RETRIES: int = Field(default=2)

    # Google Calendar
    GOOGLE_CLIENT_ID: str = Field(default="")
    GOOGLE_CLIENT_SECRET: str = Field(default="")
    GOOGLE_REFRESH_TOKEN: str = Field(default="")
    GOOGLE_CALENDAR_ID: str = Field(default="primary")
    CALENDAR_TIMEZONE: str = Field(default="America/Sao_Paulo")
    CALENDAR_EVENT_MINUTES: int = Field(default=60)

    model_config = SettingsConfigDict(
        case_sensitive=True,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


settings = Settings()
