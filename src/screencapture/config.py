"""
screencapture Configuration
===========================

This module handles configuration loading for screencapture.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    SCREENCAPTURE_MARGIN_MM          -> layout.margin_mm
    SCREENCAPTURE_MAX_PAGE_MM        -> layout.max_continuous_mm
    SCREENCAPTURE_JPEG_QUALITY       -> encoding.jpeg_quality
    SCREENCAPTURE_CHUNK_SIZE         -> transport.chunk_size
    SCREENCAPTURE_UPLOAD_URL         -> transport.upload_url
    SCREENCAPTURE_CONVERT_URL        -> conversion.api_url
    SCREENCAPTURE_CONVERT_KEY        -> conversion.api_key
    SCREENCAPTURE_CONVERT_SANDBOX    -> conversion.sandbox
    SCREENCAPTURE_OUTPUT_DIR         -> delivery.output_dir
    SCREENCAPTURE_PORT               -> server.port
    SCREENCAPTURE_LOG_LEVEL          -> logging.level
    PORT                             -> server.port (Cloud Run)

Example:
    from screencapture.config import settings

    print(settings.layout.margin_mm)
    print(settings.transport.chunk_size)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class LayoutConfig(BaseModel):
    """Page layout constants (millimetres)."""

    margin_mm: float = Field(default=10.0, ge=0, description="Margin on all four sides")
    page_width_mm: float = Field(default=210.0, gt=0, description="Reference page width (A4 portrait)")
    page_height_mm: float = Field(default=297.0, gt=0, description="Reference page height (A4 portrait)")
    px_per_mm: float = Field(
        default=96 / 25.4,
        gt=0,
        description="Device pixels per millimetre (96 dpi)",
    )
    max_continuous_mm: float = Field(
        default=5080.0,
        gt=0,
        description="Maximum height of a continuous page",
    )


class EncodingConfig(BaseModel):
    """Raster encoding settings."""

    jpeg_quality: int = Field(
        default=90,
        ge=1,
        le=100,
        description="JPEG quality for page slices and JPEG artifacts",
    )


class TransportConfig(BaseModel):
    """Remote upload transport."""

    chunk_size: int = Field(
        default=30000,
        ge=1,
        description="Maximum characters per uploaded chunk",
    )
    upload_url: Optional[str] = Field(
        default=None,
        description="Endpoint receiving f01 chunk arrays",
    )
    request_timeout_seconds: float = Field(
        default=60.0,
        gt=0,
        description="HTTP timeout for upload and conversion calls",
    )


class ConversionConfig(BaseModel):
    """Remote HTML-to-PDF conversion service."""

    api_url: str = Field(
        default="https://api.pdfshift.io/v3/convert/pdf",
        description="Conversion endpoint",
    )
    api_key: Optional[str] = Field(default=None, description="Static API credential")
    sandbox: bool = Field(
        default=True,
        description="Non-billing sandbox mode (watermarked output)",
    )
    margin_mm: float = Field(
        default=10.0,
        ge=0,
        description="Page margin requested from the service (independent of layout.margin_mm)",
    )
    base_href: Optional[str] = Field(
        default=None,
        description="<base href> for relative URLs in converted documents",
    )
    stylesheets: List[str] = Field(
        default_factory=list,
        description="Stylesheet URLs linked into converted documents",
    )


class DeliveryConfig(BaseModel):
    """Local delivery settings."""

    output_dir: str = Field(
        default="./captures",
        description="Directory for direct downloads",
    )


class CaptureDefaultsConfig(BaseModel):
    """Defaults applied to capture requests."""

    background: str = Field(default="#ffffff", description="Default background colour")
    strategy_hint: Optional[str] = Field(
        default=None,
        description="Default page layout hint (None = single fit)",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8002, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for screencapture.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    layout: LayoutConfig = Field(default_factory=LayoutConfig)
    encoding: EncodingConfig = Field(default_factory=EncodingConfig)
    transport: TransportConfig = Field(default_factory=TransportConfig)
    conversion: ConversionConfig = Field(default_factory=ConversionConfig)
    delivery: DeliveryConfig = Field(default_factory=DeliveryConfig)
    capture: CaptureDefaultsConfig = Field(default_factory=CaptureDefaultsConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Layout
    if env_margin := os.environ.get("SCREENCAPTURE_MARGIN_MM"):
        config_data.setdefault("layout", {})["margin_mm"] = float(env_margin)
    if env_max := os.environ.get("SCREENCAPTURE_MAX_PAGE_MM"):
        config_data.setdefault("layout", {})["max_continuous_mm"] = float(env_max)

    # Encoding
    if env_quality := os.environ.get("SCREENCAPTURE_JPEG_QUALITY"):
        config_data.setdefault("encoding", {})["jpeg_quality"] = int(env_quality)

    # Transport
    if env_chunk := os.environ.get("SCREENCAPTURE_CHUNK_SIZE"):
        config_data.setdefault("transport", {})["chunk_size"] = int(env_chunk)
    if env_upload := os.environ.get("SCREENCAPTURE_UPLOAD_URL"):
        config_data.setdefault("transport", {})["upload_url"] = env_upload

    # Remote conversion
    if env_convert := os.environ.get("SCREENCAPTURE_CONVERT_URL"):
        config_data.setdefault("conversion", {})["api_url"] = env_convert
    if env_key := os.environ.get("SCREENCAPTURE_CONVERT_KEY"):
        config_data.setdefault("conversion", {})["api_key"] = env_key
    if env_sandbox := os.environ.get("SCREENCAPTURE_CONVERT_SANDBOX"):
        config_data.setdefault("conversion", {})["sandbox"] = env_sandbox

    # Delivery
    if env_out := os.environ.get("SCREENCAPTURE_OUTPUT_DIR"):
        config_data.setdefault("delivery", {})["output_dir"] = env_out

    # Server settings (Cloud Run uses PORT env var)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("SCREENCAPTURE_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("SCREENCAPTURE_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
