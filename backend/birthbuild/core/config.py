"""Configuration and settings"""

from pydantic_settings import BaseSettings
from pydantic import Field


class Settings(BaseSettings):
    """Application settings from environment variables"""

    # Model providers
    default_provider: str = Field(default="anthropic", env="DEFAULT_PROVIDER")
    anthropic_api_key: str = Field(default="", env="ANTHROPIC_API_KEY")
    openai_api_key: str = Field(default="", env="OPENAI_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-5-20250929", env="ANTHROPIC_MODEL")
    openai_model: str = Field(default="gpt-4.1", env="OPENAI_MODEL")
    design_system_max_tokens: int = Field(default=8192, env="DESIGN_SYSTEM_MAX_TOKENS")
    page_max_tokens: int = Field(default=16384, env="PAGE_MAX_TOKENS")
    model_timeout_seconds: float = Field(default=240.0, env="MODEL_TIMEOUT_SECONDS")

    # Design system repair: "auto" re-invokes once with the issue list, "manual" stops for an operator
    design_system_repair_policy: str = Field(default="auto", env="DESIGN_SYSTEM_REPAIR_POLICY")

    # Prompt template overrides (experimentation path)
    allow_prompt_overrides: bool = Field(default=False, env="ALLOW_PROMPT_OVERRIDES")

    # Hosting provider
    netlify_api_token: str = Field(default="", env="NETLIFY_API_TOKEN")
    netlify_api_url: str = Field(default="https://api.netlify.com/api/v1", env="NETLIFY_API_URL")
    netlify_timeout_seconds: float = Field(default=120.0, env="NETLIFY_TIMEOUT_SECONDS")
    site_domain: str = Field(default="birthbuild.com", env="SITE_DOMAIN")

    # Record store
    record_store: str = Field(default="memory", env="RECORD_STORE")
    supabase_url: str = Field(default="", env="SUPABASE_URL")
    supabase_service_key: str = Field(default="", env="SUPABASE_SERVICE_KEY")
    record_store_timeout_seconds: float = Field(default=15.0, env="RECORD_STORE_TIMEOUT_SECONDS")

    # Rate limits (requests per window)
    rate_limit_window_seconds: int = Field(default=3600, env="RATE_LIMIT_WINDOW_SECONDS")
    build_rate_limit: int = Field(default=5, env="BUILD_RATE_LIMIT")
    design_system_rate_limit: int = Field(default=10, env="DESIGN_SYSTEM_RATE_LIMIT")
    publish_rate_limit: int = Field(default=10, env="PUBLISH_RATE_LIMIT")

    # Server
    api_key: str = Field(default="", env="API_KEY")
    frontend_url: str = Field(default="http://localhost:5173", env="FRONTEND_URL")
    log_level: str = Field(default="INFO", env="LOG_LEVEL")

    # Environment
    environment: str = Field(default="development", env="ENVIRONMENT")

    # API Configuration
    api_title: str = "BirthBuild Site Pipeline API"
    api_version: str = "0.1.0"

    class Config:
        env_file = ".env"
        case_sensitive = False


# Global settings instance
settings = Settings()
