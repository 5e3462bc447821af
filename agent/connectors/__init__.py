"""Protocol connectors for the load generator."""

from agent.connectors.nfs import NfsConnector
from agent.connectors.s3 import S3Connector

__all__ = ["NfsConnector", "S3Connector"]
