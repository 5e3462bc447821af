"""Load generation settings."""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings

from common.utils import parse_size


class LoadSettings(BaseSettings):
    """Tuning for the protocol connectors, loaded from environment variables."""
    
    # Payload written per call and chunk size per read, in bytes
    nfs_write_size: int = 1024 * 1024
    nfs_read_size: int = 512 * 1024
    s3_write_size: int = 8 * 1024 * 1024
    s3_read_size: int = 1024 * 1024
    
    # NFS mounts
    mount_root: Path = Field(default=Path("/tmp/storage_plumbing"))
    mount_options: str = "vers=3,proto=tcp,hard,rsize=524288,wsize=1048576"
    mount_timeout: int = 30  # seconds
    
    # S3 client
    s3_region: str = "us-east-1"
    s3_use_ssl: bool = False
    s3_verify_ssl: bool = False
    s3_max_pool_connections: int = 4
    
    class Config:
        env_prefix = "FB_LOAD_"
        env_file = ".env"
        extra = "ignore"
    
    @field_validator(
        "nfs_write_size", "nfs_read_size", "s3_write_size", "s3_read_size",
        mode="before",
    )
    @classmethod
    def _parse_size(cls, value: Union[int, str]) -> int:
        if isinstance(value, str):
            return parse_size(value)
        return value


# Global settings instance
_settings: Optional[LoadSettings] = None


def get_load_settings() -> LoadSettings:
    """Get the global load settings instance."""
    global _settings
    if _settings is None:
        _settings = LoadSettings()
    return _settings


def init_load_settings(**kwargs) -> LoadSettings:
    """Initialize load settings with custom values."""
    global _settings
    _settings = LoadSettings(**kwargs)
    return _settings
