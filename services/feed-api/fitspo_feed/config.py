"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB (MySQL-protocol compatible) ───────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "fitspo"
    # Full SQLAlchemy URL, e.g. sqlite+aiosqlite:///./fitspo.db for local runs
    database_url_override: Optional[str] = None

    @property
    def database_url(self) -> str:
        if self.database_url_override:
            return self.database_url_override
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    # ── Redis ──────────────────────────────────────────────────────────────
    redis_host: str = "redis"
    redis_port: int = 6379
    redis_rank_snapshot_enabled: bool = True
    redis_rank_snapshot_ttl: int = 172800   # 48h, outlives the day it describes

    # ── Feeds ──────────────────────────────────────────────────────────────
    feed_page_size: int = 12             # home feed page
    hot_page_size: int = 10              # "Hot Today" screen page
    hot_max_scan_batches: int = 10       # store fetches per hot page, at most
    rank_cache_size: int = 100           # daily top-N kept for rank badges
    rank_cache_page_size: int = 100
    explore_scan_page_size: int = 80
    explore_max_pages: int = 5
    max_page_size: int = 200

    # Calendar day boundaries ("today's posts", daily cache) use this zone
    feed_timezone: str = "UTC"

    # Per-page store timeout, seconds
    store_fetch_timeout: float = 5.0

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "feed-api"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
