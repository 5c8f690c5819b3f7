"""Configuration management for ChatCommerce."""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # API Settings
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT")
    api_allowed_origins: str | list[str] = Field(default=["*"], alias="API_ALLOWED_ORIGINS")
    # When set, the operator REST API requires a matching X-API-Key header
    admin_api_key: str | None = Field(default=None, alias="ADMIN_API_KEY")

    # Database Settings
    database_url: str | None = Field(default=None, alias="DATABASE_URL")
    postgres_host: str = Field(default="localhost", alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str = Field(default="chatcommerce", alias="POSTGRES_DB")
    postgres_user: str = Field(default="postgres", alias="POSTGRES_USER")
    postgres_password: str = Field(default="password", alias="POSTGRES_PASSWORD")
    postgres_pool_size: int = Field(default=20, alias="POSTGRES_POOL_SIZE")
    postgres_max_overflow: int = Field(default=40, alias="POSTGRES_MAX_OVERFLOW")
    postgres_pool_recycle: int = Field(default=3600, alias="POSTGRES_POOL_RECYCLE")
    postgres_pool_pre_ping: bool = Field(default=True, alias="POSTGRES_POOL_PRE_PING")

    # Logging
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # LLM Settings
    llm_model: str = Field(default="gpt-4o-mini", alias="LLM_MODEL")
    llm_api_key: str | None = Field(default=None, alias="LLM_API_KEY")
    llm_api_base: str | None = Field(default=None, alias="LLM_API_BASE")
    llm_temperature: float = Field(default=0.3, alias="LLM_TEMPERATURE")
    llm_max_tokens: int = Field(default=1024, alias="LLM_MAX_TOKENS")
    # Per model invocation; exceeding it switches the turn to its fallback path
    llm_timeout: float = Field(default=30.0, alias="LLM_TIMEOUT", gt=0)

    # Merchant tool server (JSON-RPC)
    mcp_endpoint_path: str = Field(default="/api/mcp", alias="MCP_ENDPOINT_PATH")
    mcp_tool_timeout: float = Field(default=10.0, alias="MCP_TOOL_TIMEOUT", gt=0)
    mcp_access_token: str | None = Field(default=None, alias="MCP_ACCESS_TOKEN")

    # Twilio (SMS)
    twilio_account_sid: str | None = Field(default=None, alias="TWILIO_ACCOUNT_SID")
    twilio_auth_token: str | None = Field(default=None, alias="TWILIO_AUTH_TOKEN")
    twilio_phone_number: str | None = Field(default=None, alias="TWILIO_PHONE_NUMBER")
    twilio_status_callback_url: str | None = Field(
        default=None, alias="TWILIO_STATUS_CALLBACK_URL"
    )
    # Public URL Twilio posts to; part of the signature base string
    twilio_webhook_url: str | None = Field(default=None, alias="TWILIO_WEBHOOK_URL")
    twilio_lookup_enabled: bool = Field(default=False, alias="TWILIO_LOOKUP_ENABLED")

    # WhatsApp Business (Graph API)
    whatsapp_access_token: str | None = Field(default=None, alias="WHATSAPP_ACCESS_TOKEN")
    whatsapp_phone_number_id: str | None = Field(default=None, alias="WHATSAPP_PHONE_NUMBER_ID")
    whatsapp_api_version: str = Field(default="v22.0", alias="WHATSAPP_API_VERSION")
    whatsapp_verify_token: str | None = Field(default=None, alias="WHATSAPP_VERIFY_TOKEN")
    whatsapp_app_secret: str | None = Field(default=None, alias="WHATSAPP_APP_SECRET")
    whatsapp_template_only: bool = Field(default=False, alias="WHATSAPP_TEMPLATE_ONLY")
    whatsapp_template_language: str = Field(default="en_US", alias="WHATSAPP_TEMPLATE_LANGUAGE")

    # Merchant platform webhooks; separate secret scope from the channels
    shopify_webhook_secret: str | None = Field(default=None, alias="SHOPIFY_WEBHOOK_SECRET")

    # Tenancy fallbacks when no store connection matches the receiving number
    default_tenant_id: str = Field(default="default", alias="DEFAULT_TENANT_ID")
    default_shop_domain: str | None = Field(default=None, alias="DEFAULT_SHOP_DOMAIN")

    # Conversation pipeline
    conversation_history_window: int = Field(
        default=20, alias="CONVERSATION_HISTORY_WINDOW", ge=0
    )
    send_retry_backoff_seconds: float = Field(
        default=1.0, alias="SEND_RETRY_BACKOFF_SECONDS", ge=0
    )
    status_buffer_max_entries: int = Field(
        default=1000, alias="STATUS_BUFFER_MAX_ENTRIES", ge=0
    )
    status_buffer_ttl_seconds: float = Field(
        default=300.0, alias="STATUS_BUFFER_TTL_SECONDS", ge=0
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    @field_validator("api_allowed_origins", mode="before")
    @classmethod
    def split_allowed_origins(cls, value: str | list[str] | None) -> list[str]:
        """Accept a comma-separated string from the environment."""
        if not value:
            return ["*"]
        if isinstance(value, str):
            return [origin.strip() for origin in value.split(",") if origin.strip()]
        return value

    @field_validator("mcp_endpoint_path", mode="before")
    @classmethod
    def normalize_endpoint_path(cls, value: str | None) -> str:
        """Ensure the tool endpoint path starts with a slash."""
        if not value:
            return "/api/mcp"
        value = str(value).strip()
        return value if value.startswith("/") else f"/{value}"

    @property
    def postgres_url(self) -> str:
        """Get PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @property
    def sqlalchemy_url(self) -> str:
        return self.database_url or self.postgres_url


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
