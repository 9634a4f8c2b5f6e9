# Configuration management

from pydantic_settings import BaseSettings, SettingsConfigDict  # type: ignore
from functools import lru_cache
from typing import List


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="SCHEMAFLOW_",
        case_sensitive=False,
        extra="ignore",
    )

    # Storage
    storage_backend: str = "fs://"  # fs://, sql or http
    storage_path: str = "./storage"
    database_url: str = "sqlite:///./schemaflow.db"
    db_echo: bool = False
    remote_url: str = "http://localhost:8081/v1"
    remote_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = True

    # Import
    batch_size: int = 100
    inference_depth: int = 0  # 0 = whole batch
    primary_key: List[str] = []
    auto_generate: List[str] = []
    update_schema: bool = False
    append: bool = False
    no_create: bool = False
    auto_evolve_on_failure: bool = True
    cleanup_null_values: bool = True
    conflict_policy: str = "fail"  # fail or string

    # Type detection
    detect_byte_arrays: bool = False
    detect_uuids: bool = True
    detect_times: bool = True
    detect_integers: bool = True

    # Observability
    metrics_enabled: bool = True


@lru_cache()
def get_settings() -> Settings:
    return Settings()
