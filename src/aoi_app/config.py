"""Configuration management using Pydantic settings."""

from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

from aoi_engine.features.feature import FeatureKind


class Settings(BaseSettings):
    """Application settings loaded from environment variables (AOI_ prefix)."""

    model_config = SettingsConfigDict(
        env_prefix="AOI_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "AOI Studio"
    debug: bool = False
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Persistence: one durable slot holding the FeatureCollection
    data_dir: Path = Path("./data/aoi")
    persistence_key: str = "aoi-features"
    persistence_backend: str = "file"  # "file" or "memory"

    # Drawing
    enabled_tools: list[FeatureKind] = [
        FeatureKind.POLYGON,
        FeatureKind.POLYLINE,
        FeatureKind.MARKER,
    ]
    default_visible: bool = True
    label_prefix: str = "Area"


settings = Settings()
