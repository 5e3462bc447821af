"""Network interface and endpoint models."""

from __future__ import annotations

from enum import Enum
from typing import Optional
from pydantic import BaseModel, Field


class EndpointRole(str, Enum):
    """Traffic class an endpoint is advertised for."""
    DATA = "data"
    CONTROL = "control"


class SubnetReference(BaseModel):
    """Reference to the subnet an interface lives in."""
    id: Optional[str] = Field(default=None)
    name: str = Field(default="", description="Subnet name")
    resource_type: Optional[str] = Field(default=None)


class NetworkInterface(BaseModel):
    """Network interface as returned by the management API."""
    id: Optional[str] = Field(default=None)
    name: str = Field(default="", description="Interface name")
    address: str = Field(..., description="IP address")
    enabled: bool = Field(default=True)
    gateway: Optional[str] = Field(default=None)
    mtu: Optional[int] = Field(default=None)
    netmask: Optional[str] = Field(default=None)
    services: list[str] = Field(default_factory=list)
    subnet: SubnetReference = Field(default_factory=SubnetReference)
    type: Optional[str] = Field(default=None)
    vlan: Optional[int] = Field(default=None)
    
    @property
    def is_data(self) -> bool:
        return EndpointRole.DATA.value in self.services


class NetworkEndpoint(BaseModel):
    """An address the array serves traffic on."""
    address: str = Field(..., description="IP address or hostname")
    subnet: str = Field(default="", description="Subnet identifier")
    role: EndpointRole = Field(default=EndpointRole.DATA)
    name: Optional[str] = Field(default=None, description="Interface name")
    
    @classmethod
    def from_interface(cls, iface: NetworkInterface, role: EndpointRole) -> "NetworkEndpoint":
        return cls(
            address=iface.address,
            subnet=iface.subnet.name,
            role=role,
            name=iface.name or None,
        )
