"""Application settings loaded from environment variables."""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Milvus connection
    milvus_host: str = "localhost"
    milvus_port: int = 19530
    milvus_database: str = "default"
    milvus_token: str = ""
    milvus_timeout_seconds: float = 30.0

    # Migration
    strict_migration: bool = False

    # Builder defaults
    default_varchar_primary_key_length: int = 64
    default_array_varchar_length: int = 256
    default_nlist: int = 1024

    # Search
    default_top_k: int = 10

    # App
    log_level: str = "INFO"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
