"""Application settings."""

import os
from pathlib import Path
from typing import Optional
from pydantic import BaseModel

CONFIG_DIR = Path(__file__).parent


def _env_bool(name: str) -> Optional[bool]:
    value = os.environ.get(name)
    if value is None:
        return None
    return value.strip().lower() in ("1", "true", "yes", "on")


class Settings(BaseModel):
    """Application configuration settings."""

    # AI provider settings
    ai_provider: str = "openai"  # "openai", "azure" or "anthropic"
    ai_service_disabled: bool = False
    openai_model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    max_tokens: int = 2000

    # API Keys
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None

    # Azure OpenAI
    azure_api_key: Optional[str] = None
    azure_endpoint: Optional[str] = None
    azure_deployment: Optional[str] = None
    azure_api_version: str = "2024-02-15-preview"

    # Memory settings
    memory_enabled: bool = True
    db_path: str = "data/formagent.db"
    max_messages: int = 20
    context_window: int = 4000
    cache_ttl_minutes: int = 60
    cleanup_interval_minutes: int = 30
    archive_after_days: int = 30

    # Guardrails / personality tables
    guardrails_path: str = str(CONFIG_DIR / "guardrails.yaml")
    personality_path: str = str(CONFIG_DIR / "personality.yaml")

    # Server
    host: str = "0.0.0.0"
    port: int = 5000
    frontend_url: str = "http://localhost:3000"

    # Logging
    log_level: str = "INFO"
    verbose: bool = False

    def __init__(self, **data):
        # Auto-load from environment if not provided
        env_map = {
            "ai_provider": "AI_PROVIDER",
            "openai_api_key": "OPENAI_API_KEY",
            "openai_model": "OPENAI_MODEL",
            "anthropic_api_key": "ANTHROPIC_API_KEY",
            "azure_api_key": "AZURE_OPENAI_API_KEY",
            "azure_endpoint": "AZURE_OPENAI_ENDPOINT",
            "azure_deployment": "AZURE_OPENAI_DEPLOYMENT_NAME",
            "azure_api_version": "AZURE_OPENAI_API_VERSION",
            "temperature": "AI_TEMPERATURE",
            "max_tokens": "AI_MAX_TOKENS",
            "db_path": "FORMAGENT_DB_PATH",
            "frontend_url": "FRONTEND_URL",
            "log_level": "LOG_LEVEL",
        }
        for field_name, env_name in env_map.items():
            if data.get(field_name) is None and os.environ.get(env_name):
                data[field_name] = os.environ[env_name]

        if data.get("ai_service_disabled") is None:
            disabled = _env_bool("AI_SERVICE_DISABLED")
            if disabled is not None:
                data["ai_service_disabled"] = disabled

        # Drop explicit Nones so field defaults apply
        data = {k: v for k, v in data.items() if v is not None}
        super().__init__(**data)

    def get_llm_api_key(self) -> Optional[str]:
        """Get the API key for the configured AI provider."""
        if self.ai_provider == "openai":
            return self.openai_api_key
        elif self.ai_provider == "azure":
            return self.azure_api_key
        elif self.ai_provider == "anthropic":
            return self.anthropic_api_key
        return None

    def get_model_name(self) -> Optional[str]:
        """Model (or Azure deployment) used for completions."""
        if self.ai_provider == "azure":
            return self.azure_deployment
        if self.ai_provider == "openai":
            return self.openai_model
        return None
