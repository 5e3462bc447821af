"""Run configuration settings."""

from __future__ import annotations

import os
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings


def _cpu_count() -> int:
    return os.cpu_count() or 1


class Settings(BaseSettings):
    """Benchmark settings loaded from environment variables."""
    
    # Management endpoint
    mgmt_vip: Optional[str] = None
    token: Optional[str] = Field(default=None, repr=False)
    verify_ssl: bool = False
    request_timeout: float = 30.0  # seconds
    
    # Test run
    test_duration: float = Field(default=60.0, gt=0)  # seconds per phase
    nfs_concurrency: int = Field(default_factory=lambda: _cpu_count() * 2, ge=1)
    s3_concurrency: int = Field(default_factory=_cpu_count, ge=1)
    skip_nfs: bool = False
    skip_s3: bool = False
    recommended_cores: int = 12
    
    # Transient resource names, suffixed with the short hostname
    filesystem_prefix: str = "deleteme-plumbing"
    object_account_prefix: str = "deleteme-plumb-account"
    object_user_prefix: str = "deleteme-plumb-user"
    bucket_prefix: str = "deleteme-plumb-bucket"
    
    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    
    class Config:
        env_prefix = "FB_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"
    
    @property
    def can_provision(self) -> bool:
        return bool(self.mgmt_vip and self.token)


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def init_settings(**kwargs) -> Settings:
    """Initialize settings with custom values."""
    global _settings
    _settings = Settings(**kwargs)
    return _settings
