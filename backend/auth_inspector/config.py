"""Auth Inspector configuration — settings, directories, probe and batch limits."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Management API key (empty = auth disabled, dev mode)
    management_api_key: str = ""

    # CORS (comma-separated origins)
    cors_origins: str = "http://localhost:3000"

    # Credential storage
    auth_dir: str = "data/auths"
    inspection_config_path: str = "data/auth_inspection.yaml"

    # Initial inspection config (used when no persisted config exists)
    inspection_enabled: bool = False
    inspection_interval_seconds: int = 3600
    inspection_auto_delete_invalid: bool = False
    inspection_provider: str = "codex"

    # Provider probes
    codex_usage_probe_url: str = "https://chatgpt.com/backend-api/wham/usage"
    probe_timeout_seconds: float = 15.0

    # Batch verification limits
    verify_default_concurrency: int = 40
    verify_max_concurrency: int = 64
    verify_default_batch_size: int = 100
    verify_max_batch_size: int = 1000

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
