"""Application settings loaded from the environment."""

from pydantic_settings import BaseSettings, SettingsConfigDict


# Placeholder value used in .env templates for keys that are not configured
API_KEY_PLACEHOLDER = "****"


class Settings(BaseSettings):
    """Runtime configuration for the Forge Chat backend."""

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    cors_origins: str = "http://localhost:3000"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite+aiosqlite:///./data/forge_chat.db"
    database_echo: bool = False

    # Auth
    session_cookie_name: str = "session_token"

    # LLM providers
    openai_api_key: str | None = None
    openrouter_api_key: str | None = None
    groq_api_key: str | None = None
    groq_base_url: str = "https://api.groq.com/openai/v1"
    ollama_base_url: str | None = None
    openai_compatible_data: str | None = None
    openai_realtime_url: str = "https://api.openai.com/v1/realtime/sessions"
    openrouter_models_url: str = "https://openrouter.ai/api/v1/models"

    # File storage
    file_storage_path: str = "./data/uploads"
    file_storage_prefix: str = ""

    # Chat pipeline
    max_tool_steps: int = 10
    file_context_max_length: int = 100_000

    # Voice
    voice_history_limit: int = 20
    voice_history_delay_ms: int = 100

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def cors_origins_list(self) -> list[str]:
        """CORS origins as a list."""
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    def has_api_key(self, value: str | None) -> bool:
        """Check whether a configured key is usable (set and not the placeholder)."""
        return bool(value) and value != API_KEY_PLACEHOLDER


settings = Settings()
