"""Common utilities and models shared across manager and agent."""

__version__ = "0.1.0"

from common.exceptions import (
    PlumbingError,
    AuthError,
    RequestError,
    DiscoveryError,
    ProvisioningError,
    UnreachableTargetError,
)
from common.models.network import NetworkEndpoint
from common.models.results import Outcome, Protocol, ResultRecord

__all__ = [
    "PlumbingError",
    "AuthError",
    "RequestError",
    "DiscoveryError",
    "ProvisioningError",
    "UnreachableTargetError",
    "NetworkEndpoint",
    "Outcome",
    "Protocol",
    "ResultRecord",
]
