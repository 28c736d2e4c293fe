"""
Configuration for BookTender.

Settings are read from environment variables (a local .env file is loaded
by the CLI before the first call to get_settings).
"""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path


@dataclass
class Settings:
    """Application settings loaded from environment."""

    # Database
    database_url: str = "sqlite:///./booktender.db"
    database_echo: bool = False

    # Managed storage
    data_dir: str = "./data"
    photos_dir: str = ""
    cache_path: str = ""

    # Vision service
    vision_model: str = "claude-sonnet-4-20250514"
    vision_max_tokens: int = 4096
    vision_timeout: float = 120.0

    # Catalog service
    catalog_timeout: float = 10.0

    # Pipeline
    max_concurrent_photos: int = 1

    # Duplicate detection (tunable, defaults preserve existing catalogs)
    fuzzy_threshold: float = 0.85
    title_weight: float = 0.6
    author_weight: float = 0.4

    # Environment
    log_level: str = "INFO"
    environment: str = "development"
    debug: bool = False

    def __post_init__(self):
        if not self.photos_dir:
            self.photos_dir = str(Path(self.data_dir) / "photos")
        if not self.cache_path:
            self.cache_path = str(Path(self.data_dir) / "cache.db")

    @classmethod
    def from_env(cls) -> "Settings":
        """Load settings from environment variables."""
        return cls(
            database_url=os.getenv("DATABASE_URL", cls.database_url),
            database_echo=os.getenv("DATABASE_ECHO", "false").lower() == "true",
            data_dir=os.getenv("BOOKTENDER_DATA_DIR", cls.data_dir),
            photos_dir=os.getenv("PHOTOS_DIR", ""),
            cache_path=os.getenv("CACHE_PATH", ""),
            vision_model=os.getenv("VISION_MODEL", cls.vision_model),
            vision_max_tokens=int(os.getenv("VISION_MAX_TOKENS", cls.vision_max_tokens)),
            vision_timeout=float(os.getenv("VISION_TIMEOUT", cls.vision_timeout)),
            catalog_timeout=float(os.getenv("CATALOG_TIMEOUT", cls.catalog_timeout)),
            max_concurrent_photos=int(os.getenv("MAX_CONCURRENT_PHOTOS", cls.max_concurrent_photos)),
            fuzzy_threshold=float(os.getenv("FUZZY_THRESHOLD", cls.fuzzy_threshold)),
            title_weight=float(os.getenv("TITLE_WEIGHT", cls.title_weight)),
            author_weight=float(os.getenv("AUTHOR_WEIGHT", cls.author_weight)),
            log_level=os.getenv("LOG_LEVEL", cls.log_level).upper(),
            environment=os.getenv("BOOKTENDER_ENV", cls.environment),
            debug=os.getenv("DEBUG", "false").lower() == "true",
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings.from_env()
