"""Transient storage resource models."""

from __future__ import annotations

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class ResourceKind(str, Enum):
    """Kinds of resources a run provisions."""
    FILE_SHARE = "file_share"
    OBJECT_ACCOUNT = "object_account"
    OBJECT_USER = "object_user"
    OBJECT_CREDENTIAL = "object_credential"
    BUCKET = "bucket"


class NfsRule(BaseModel):
    """NFS export settings of a file share."""
    enabled: bool = Field(default=True)
    v3_enabled: bool = Field(default=True)
    v4_1_enabled: bool = Field(default=False)
    rules: Optional[str] = Field(default=None, description="Export rules")


class FileShareOptions(BaseModel):
    """Options for a newly created file share."""
    nfs: NfsRule = Field(default_factory=NfsRule)
    provisioned: Optional[int] = Field(default=None, description="Provisioned size in bytes")
    fast_remove_directory_enabled: bool = Field(default=False)
    snapshot_directory_enabled: bool = Field(default=False)
    
    def to_body(self) -> dict:
        """Request body for the file-systems endpoint."""
        return self.model_dump(exclude_none=True)


class AccessKey(BaseModel):
    """Object store access key."""
    name: str = Field(..., description="Access key id")
    secret_access_key: str = Field(default="", repr=False)
    user: Optional[str] = Field(default=None, description="Owning account/user")
    enabled: bool = Field(default=True)
    created: Optional[int] = Field(default=None)


class TransientResource(BaseModel):
    """A resource created for the duration of one run."""
    kind: ResourceKind
    name: str
    account: Optional[str] = Field(default=None, description="Owning object store account")
    
    @property
    def label(self) -> str:
        if self.account and self.kind == ResourceKind.OBJECT_USER:
            return f"{self.kind.value} {self.account}/{self.name}"
        return f"{self.kind.value} {self.name}"
