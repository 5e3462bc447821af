"""Exception hierarchy for the benchmark."""

from __future__ import annotations

from typing import Optional


class PlumbingError(Exception):
    """Base class for all benchmark errors."""


class AuthError(PlumbingError):
    """Login or REST version negotiation with the array failed."""


class RequestError(PlumbingError):
    """A single management API call failed."""
    
    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class DiscoveryError(PlumbingError):
    """Network endpoints could not be enumerated."""


class ProvisioningError(PlumbingError):
    """Creating or destroying a transient resource failed."""


class UnreachableTargetError(PlumbingError):
    """A data connection to a target could not be established."""
