"""Configuration for the Datadog metrics reporter"""
from pathlib import Path
from typing import List, Literal, Optional
from pydantic import Field, validator
from pydantic_settings import BaseSettings


class Config(BaseSettings):
    """Reporter and service settings, read from environment variables"""

    # statsd destination
    statsd_address: str = Field(default="127.0.0.1:8125", description="dogstatsd UDP host:port")
    statsd_prefix: str = Field(default="", description="Namespace prefix for every metric name")
    statsd_tags_str: str = Field(default="", description="Tags attached to every sample (comma-separated)")
    percentiles_str: str = Field(
        default="0.5,0.75,0.95,0.99,0.999",
        description="Percentiles reported for histograms and timers (comma-separated, empty disables)"
    )

    # Flushing
    flush_interval: float = Field(default=10.0, ge=0.1, description="Flush interval in seconds")
    flush_length: int = Field(default=32, ge=1, description="Samples buffered per datagram (1 disables buffering)")

    # Service settings
    service_name: str = Field(default="datadog-reporter", description="Service name")
    service_version: str = Field(default="1.0.0", description="Service version")
    server_host: str = Field(default="0.0.0.0", description="Health check server host")
    server_port: int = Field(default=9125, ge=1, le=65535, description="Health check server port")

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO", description="Log level")
    log_file: Optional[Path] = Field(default=None, description="Log file path (console only when unset)")

    class Config:
        env_prefix = ""
        case_sensitive = False

    @validator('statsd_address')
    def validate_statsd_address(cls, v):
        """Require host:port"""
        host, sep, port = v.rpartition(':')
        if not sep or not host or not port.isdigit():
            raise ValueError("STATSD_ADDRESS must be host:port")
        return v

    @validator('percentiles_str')
    def validate_percentiles(cls, v):
        """Each percentile must be a fraction in [0, 1]"""
        for item in v.split(','):
            item = item.strip()
            if not item:
                continue
            value = float(item)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"Percentile {item} is outside [0, 1]")
        return v

    @validator('log_level', pre=True)
    def normalize_log_level(cls, v):
        return v.upper() if isinstance(v, str) else v

    @validator('log_file')
    def ensure_log_directory(cls, v):
        if isinstance(v, Path):
            v.parent.mkdir(parents=True, exist_ok=True)
        return v

    @property
    def statsd_tags(self) -> List[str]:
        """Get tags as a list"""
        return [item.strip() for item in self.statsd_tags_str.split(',') if item.strip()]

    @property
    def percentiles(self) -> List[float]:
        """Get percentiles as a list of fractions"""
        return [float(item) for item in self.percentiles_str.split(',') if item.strip()]
