"""
Configuration Management System
Handles process settings for the proxy, the forwarder and logging.

Operator policy (target server, scope flag, thresholds) is not configured
here: it is persisted in the preferences file and managed by PolicyStore.
"""

from pathlib import Path
from typing import List
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings
import structlog

logger = structlog.get_logger()


class ForwardingConfig(BaseSettings):
    """Delivery settings for the forwarding pipeline"""

    # Key/value store holding the operator policy
    preferences_file: Path = Field(Path("config/preferences.yaml"))

    # Fixed timeout for each POST; 0 disables it (block until the OS gives up)
    request_timeout_seconds: float = Field(10.0, ge=0)

    # Bounded async dispatch; 0 workers posts inline on the calling thread
    dispatch_workers: int = Field(0, ge=0)
    dispatch_queue_size: int = Field(256, ge=1)

    model_config = {
        "env_prefix": "SHYHURRICANE_",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore"
    }


class ProxyConfig(BaseSettings):
    """HTTP interception proxy configuration"""

    proxy_host: str = Field("127.0.0.1")
    proxy_port: int = Field(8080, ge=1, le=65535)

    # mitmproxy configuration directory (CA certificates live here)
    confdir: Path = Field(Path("~/.mitmproxy"), validate_default=True)

    # Regular expressions matched against request URLs to decide scope
    scope: List[str] = Field(default_factory=list)

    @field_validator("confdir", mode='after')
    @classmethod
    def expand_confdir(cls, v):
        """Resolve ~ so mitmproxy gets an absolute directory"""
        return v.expanduser()

    model_config = {
        "env_prefix": "SHYHURRICANE_",
        "env_file": ".env",
        "extra": "ignore"
    }


class LoggingConfig(BaseSettings):
    """Log level and destination"""

    log_level: str = Field("INFO")
    log_dir: Path = Field(Path("logs"))

    @field_validator("log_level", mode='after')
    @classmethod
    def validate_log_level(cls, v):
        """Ensure the level is one the logging module knows"""
        levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        v = v.upper()
        if v not in levels:
            raise ValueError(f"Invalid log level. Choose from: {levels}")
        return v

    model_config = {
        "env_prefix": "SHYHURRICANE_",
        "env_file": ".env",
        "extra": "ignore"
    }


class ApplicationConfig:
    """
    Main configuration class that combines all config sections
    This is what the rest of the application will use
    """

    def __init__(self):
        self.forwarding = ForwardingConfig()
        self.proxy = ProxyConfig()
        self.logging = LoggingConfig()

        # Ensure required directories exist
        self._ensure_directories()

    def _ensure_directories(self):
        """Ensure directories for preferences and logs exist"""
        directories = [
            self.forwarding.preferences_file.parent,
            self.logging.log_dir,
        ]

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)

        logger.debug("Ensured required directories exist")
