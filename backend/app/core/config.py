from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    project_name: str = "Datasight"
    env: str = "dev"

    api_host: str = "0.0.0.0"
    api_port: int = 8000

    cors_origins: str = "http://localhost:3000"  # comma-separated
    log_level: str = "INFO"

    upload_dir: str = "uploads"
    registry_path: str = "registry.json"
    max_upload_mb: int = 50

    # Row prefix used for interactive charts vs. exports
    chart_default_limit: int = 100
    export_limit: int = 1000

    snapshot_cache_size: int = 16

    model_config = SettingsConfigDict(
        env_file=(".env", "../.env"),
        env_file_encoding="utf-8",
        case_sensitive=False
    )

    def cors_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

settings = Settings()
