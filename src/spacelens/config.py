"""
Centralized configuration management.
Uses environment variables with sensible defaults.
"""
from pathlib import Path
from pydantic_settings import BaseSettings


def _find_project_root() -> Path:
    """Find project root by looking for pyproject.toml."""
    current = Path(__file__).resolve().parent
    for parent in [current] + list(current.parents):
        if (parent / "pyproject.toml").exists():
            return parent
    return current.parent.parent  # Fallback: src/spacelens -> project root


class Settings(BaseSettings):
    """Application settings with validation."""

    # Project paths
    PROJECT_ROOT: Path = _find_project_root()
    LOG_DIR: Path = PROJECT_ROOT / "logs"

    # Level-of-detail aggregation
    LOD_ENABLED: bool = True
    LOD_DETAIL: float = 0.5
    LOD_MIN_COUNT: int = 5

    # Density clustering
    GROUPING_DETAIL: float = 0.5
    MIN_CLUSTER_SIZE: int = 1

    # Row grouping
    DEFAULT_ENTITY_FIELD: str = "sku"
    DEFAULT_AXES: tuple[str, str, str] = ("revenue", "spend", "roi")

    # Logging
    LOG_LEVEL: str = "WARNING"
    LOG_FORMAT: str = "text"  # or "json"
    LOG_TO_FILE: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


# Global settings instance
settings = Settings()
