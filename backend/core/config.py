"""Application configuration loaded from environment variables."""

from pathlib import Path
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Remote asset service
    asset_api_url: str = "http://127.0.0.1:8080"
    asset_api_token: str = ""
    asset_api_timeout: float = 15.0
    assets_bulk_create_path: str = "/AssetService/Assets/Bulk/Create"
    anchor_path: str = "/DataService/anchor/v1"
    variables_bulk_create_path: str = "/DataService/Variables/Bulk/Create"

    # Synchronization
    chunk_size: int = 1000
    root_parent_id: str = "0"
    max_hierarchy_depth: int = 10
    path_separator: str = "@"

    # Redis (created-asset cache)
    redis_host: str = "127.0.0.1"
    redis_port: int = 9379
    asset_cache_ttl_seconds: int = 7 * 24 * 3600

    # Backend
    backend_host: str = "0.0.0.0"
    backend_port: int = 9200

    # Paths (relative to project root)
    mappings_dir: str = "mappings"

    @property
    def project_root(self) -> Path:
        return Path(__file__).parent.parent.parent

    model_config = {"env_file": ".env", "env_prefix": "", "extra": "ignore"}


settings = Settings()
