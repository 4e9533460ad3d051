"""Application configuration via environment variables."""

import os
import tempfile
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_name: str = "TED Talks Catalog"
    app_version: str = "1.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    # Storage
    storage_backend: Literal["sql", "supabase"] = "sql"
    database_url: str = "sqlite:///./tedtalks.db"
    supabase_url: str = ""
    supabase_service_role_key: str = ""

    # Upload staging
    staging_dir: str = os.path.join(tempfile.gettempdir(), "tedtalks_imports")
    staged_file_prefix: str = Field(default="csv-import-", min_length=1)
    max_upload_mb: int = Field(default=500, gt=0)

    # CSV import processing
    import_batch_size: int = Field(default=500, gt=0)
    max_concurrent_imports: int = Field(default=4, gt=0)
    import_queue_capacity: int = Field(default=10, ge=0)
    worker_idle_timeout_seconds: float = Field(default=60.0, gt=0)
    import_retry_after_seconds: int = Field(default=120, gt=0)

    # Imports still PROCESSING after this long are failed on restart
    stale_import_minutes: int = Field(default=30, gt=0)

    # Catalog paging
    default_page_size: int = Field(default=20, gt=0)
    max_page_size: int = Field(default=100, gt=0)

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
