"""Common data models for the storage plumbing benchmark."""

from common.models.network import NetworkInterface, NetworkEndpoint, EndpointRole
from common.models.resources import (
    AccessKey,
    FileShareOptions,
    NfsRule,
    ResourceKind,
    TransientResource,
)
from common.models.results import Outcome, Protocol, ResultRecord, TeardownFailure

__all__ = [
    "NetworkInterface",
    "NetworkEndpoint",
    "EndpointRole",
    "AccessKey",
    "FileShareOptions",
    "NfsRule",
    "ResourceKind",
    "TransientResource",
    "Outcome",
    "Protocol",
    "ResultRecord",
    "TeardownFailure",
]
