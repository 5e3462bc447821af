"""Benchmark result models."""

from __future__ import annotations

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field

from common.utils import format_byte_rate


class Protocol(str, Enum):
    """Data protocols under test."""
    NFS = "nfs"
    S3 = "s3"


class Outcome(str, Enum):
    """Outcome of testing one target over one protocol."""
    SUCCESS = "SUCCESS"
    CONNECT_FAILED = "FAILED TO CONNECT"
    MOUNT_FAILED = "MOUNT FAILED"


class ResultRecord(BaseModel):
    """Outcome and measured rates for one (target, protocol) pair."""
    target: str = Field(..., description="Data endpoint address")
    protocol: Protocol
    outcome: Outcome
    write_rate: Optional[float] = Field(default=None, description="Write throughput in bytes/s")
    read_rate: Optional[float] = Field(default=None, description="Read throughput in bytes/s")
    
    def to_row(self) -> str:
        """Render as a report line."""
        write = format_byte_rate(self.write_rate) if self.write_rate is not None else "-"
        read = format_byte_rate(self.read_rate) if self.read_rate is not None else "-"
        return f"{self.target},{self.protocol.value},{self.outcome.value},{write},{read}"


class TeardownFailure(BaseModel):
    """A transient resource that could not be removed."""
    resource: str = Field(..., description="Resource label")
    error: str
