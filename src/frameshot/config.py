"""
FrameShot Configuration
=======================

This module handles configuration loading for the screenshot service.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    FRAMESHOT_MAX_CONCURRENT     -> admission.capacity
    FRAMESHOT_RETRY_AFTER        -> admission.retry_after_seconds
    FRAMESHOT_MAX_DOWNLOAD_MB    -> download.max_bytes (in MiB)
    FRAMESHOT_CONNECT_TIMEOUT    -> download.connect_timeout
    FRAMESHOT_INACTIVITY_TIMEOUT -> download.inactivity_timeout
    FRAMESHOT_DOWNLOAD_TIMEOUT   -> download.total_timeout
    FRAMESHOT_FFMPEG_PATH        -> extraction.ffmpeg_path
    FRAMESHOT_FFMPEG_TIMEOUT     -> extraction.timeout
    FRAMESHOT_SCRATCH_DIR        -> scratch.directory
    FRAMESHOT_LOG_LEVEL          -> logging.level
    PORT / FRAMESHOT_PORT        -> server.port

Example:
    from frameshot.config import settings, build_timeout_budget

    print(settings.admission.capacity)
    budget = build_timeout_budget(settings)
"""

import os
import logging
import tempfile
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field

from frameshot.models.budget import TimeoutBudget


logger = logging.getLogger(__name__)


MEGABYTE = 1024 * 1024


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="frameshot", description="Service name")
    version: str = Field(default="v1.0.0", description="Service version")


class AdmissionConfig(BaseModel):
    """Admission gate configuration."""

    capacity: int = Field(
        default=1,
        ge=1,
        description="Maximum pipelines in flight at once",
    )
    retry_after_seconds: int = Field(
        default=10,
        ge=1,
        description="Suggested client delay when the gate is full",
    )


class DownloadConfig(BaseModel):
    """Remote video download limits."""

    max_bytes: int = Field(
        default=50 * MEGABYTE,
        ge=1024,
        description="Abort the download once this many bytes arrive",
    )
    min_bytes: int = Field(
        default=1024,
        ge=1,
        description="Smallest download treated as a plausible video",
    )
    connect_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds for the remote to start responding",
    )
    inactivity_timeout: float = Field(
        default=15.0,
        gt=0,
        description="Seconds allowed between two received chunks",
    )
    total_timeout: float = Field(
        default=120.0,
        gt=0,
        description="Hard ceiling on the whole download",
    )
    max_redirects: int = Field(default=3, ge=0, description="Redirects followed")
    user_agent: str = Field(
        default="Mozilla/5.0 (compatible; FrameShot/1.0)",
        description="User-Agent header sent to the source",
    )


class ExtractionConfig(BaseModel):
    """ffmpeg frame extraction configuration."""

    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")
    timeout: float = Field(
        default=30.0,
        gt=0,
        description="Wall clock limit for one ffmpeg run",
    )
    max_dimension: int = Field(
        default=960,
        ge=16,
        description="Longest side of the output frame, in pixels",
    )
    jpeg_quality: int = Field(
        default=8,
        ge=1,
        le=31,
        description="ffmpeg -q:v value (1 = best, 31 = worst)",
    )
    default_timestamp: float = Field(
        default=5.0,
        ge=0,
        description="Seek position used when the request has none",
    )


class StabilityConfig(BaseModel):
    """File stability polling configuration."""

    input_timeout: float = Field(default=15.0, gt=0, description="Input wait limit")
    output_timeout: float = Field(default=5.0, gt=0, description="Output wait limit")
    poll_interval: float = Field(default=0.1, gt=0, description="Seconds between polls")
    required_checks: int = Field(
        default=2,
        ge=1,
        description="Consecutive identical sizes needed",
    )
    min_output_bytes: int = Field(
        default=500,
        ge=1,
        description="Smallest plausible JPEG output",
    )


class ScratchConfig(BaseModel):
    """Scratch file configuration."""

    directory: str = Field(
        default_factory=lambda: str(Path(tempfile.gettempdir()) / "frameshot"),
        description="Directory for request scratch files",
    )
    sweep_interval_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Seconds between stale file sweeps",
    )
    max_age_seconds: float = Field(
        default=300.0,
        gt=0,
        description="Scratch files older than this are swept",
    )


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=10000, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for FrameShot.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    admission: AdmissionConfig = Field(default_factory=AdmissionConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    extraction: ExtractionConfig = Field(default_factory=ExtractionConfig)
    stability: StabilityConfig = Field(default_factory=StabilityConfig)
    scratch: ScratchConfig = Field(default_factory=ScratchConfig)
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
            Path("/app/config.yaml"),
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

    # Admission
    if env_cap := os.environ.get("FRAMESHOT_MAX_CONCURRENT"):
        config_data.setdefault("admission", {})["capacity"] = int(env_cap)
    if env_retry := os.environ.get("FRAMESHOT_RETRY_AFTER"):
        config_data.setdefault("admission", {})["retry_after_seconds"] = int(env_retry)

    # Download
    if env_mb := os.environ.get("FRAMESHOT_MAX_DOWNLOAD_MB"):
        config_data.setdefault("download", {})["max_bytes"] = int(float(env_mb) * MEGABYTE)
    if env_connect := os.environ.get("FRAMESHOT_CONNECT_TIMEOUT"):
        config_data.setdefault("download", {})["connect_timeout"] = float(env_connect)
    if env_idle := os.environ.get("FRAMESHOT_INACTIVITY_TIMEOUT"):
        config_data.setdefault("download", {})["inactivity_timeout"] = float(env_idle)
    if env_total := os.environ.get("FRAMESHOT_DOWNLOAD_TIMEOUT"):
        config_data.setdefault("download", {})["total_timeout"] = float(env_total)

    # Extraction
    if env_ffmpeg := os.environ.get("FRAMESHOT_FFMPEG_PATH"):
        config_data.setdefault("extraction", {})["ffmpeg_path"] = env_ffmpeg
    if env_ffmpeg_timeout := os.environ.get("FRAMESHOT_FFMPEG_TIMEOUT"):
        config_data.setdefault("extraction", {})["timeout"] = float(env_ffmpeg_timeout)

    # Scratch
    if env_scratch := os.environ.get("FRAMESHOT_SCRATCH_DIR"):
        config_data.setdefault("scratch", {})["directory"] = env_scratch

    # Server settings (Cloud Run / Render use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("FRAMESHOT_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging
    if env_log := os.environ.get("FRAMESHOT_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def build_timeout_budget(settings: Settings) -> TimeoutBudget:
    """Collect every pipeline time limit into one immutable budget."""
    return TimeoutBudget(
        connect=settings.download.connect_timeout,
        inactivity=settings.download.inactivity_timeout,
        total_download=settings.download.total_timeout,
        extraction=settings.extraction.timeout,
        input_stability=settings.stability.input_timeout,
        output_stability=settings.stability.output_timeout,
    )


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
