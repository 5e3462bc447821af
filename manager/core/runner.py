"""Orchestrates provisioning, load tests and teardown for a full run."""

from __future__ import annotations

import logging
import os
from typing import Callable, Optional

from agent.connectors.nfs import NfsConnector
from agent.connectors.s3 import S3Connector
from agent.core.load_generator import DataConnector, LoadGenerator
from common.exceptions import DiscoveryError, ProvisioningError, UnreachableTargetError
from common.models.network import NetworkEndpoint
from common.models.resources import AccessKey, ResourceKind, TransientResource
from common.models.results import Outcome, Protocol, ResultRecord
from common.utils import get_short_hostname
from manager.config import Settings
from manager.core.results import ResultAggregator
from manager.provisioner import ResourceProvisioner

logger = logging.getLogger(__name__)

NfsConnectorFactory = Callable[[str, str], DataConnector]
S3ConnectorFactory = Callable[[str, AccessKey, str], DataConnector]

UNREACHABLE_OUTCOMES = {
    Protocol.NFS: Outcome.MOUNT_FAILED,
    Protocol.S3: Outcome.CONNECT_FAILED,
}


def _default_nfs_connector(host: str, export: str) -> DataConnector:
    return NfsConnector(host, export)


def _default_s3_connector(endpoint: str, key: AccessKey, bucket: str) -> DataConnector:
    return S3Connector(endpoint, key.name, key.secret_access_key, bucket)


class BenchmarkRunner:
    """Run write/read tests against one data endpoint per subnet.

    Provisioning failures before or between tests are fatal and propagate.
    Unreachable targets are recorded as outcomes. Teardown failures are
    recorded in the report and the run continues. Whatever the provisioner
    still owns when the run ends is torn down on every exit path.
    """

    def __init__(
        self,
        settings: Settings,
        provisioner: Optional[ResourceProvisioner] = None,
        nfs_connector_factory: NfsConnectorFactory = _default_nfs_connector,
        s3_connector_factory: S3ConnectorFactory = _default_s3_connector,
        hostname: Optional[str] = None,
    ):
        self.settings = settings
        self.provisioner = provisioner
        self.results = ResultAggregator()
        self.hostname = hostname or get_short_hostname()
        self._nfs_connector = nfs_connector_factory
        self._s3_connector = s3_connector_factory

    # Resource names

    def _name(self, prefix: str) -> str:
        return f"{prefix}-{self.hostname}"

    @property
    def filesystem_name(self) -> str:
        return self._name(self.settings.filesystem_prefix)

    @property
    def object_account_name(self) -> str:
        return self._name(self.settings.object_account_prefix)

    @property
    def object_user_name(self) -> str:
        return self._name(self.settings.object_user_prefix)

    @property
    def bucket_name(self) -> str:
        return self._name(self.settings.bucket_prefix)

    def concurrency_for(self, protocol: Protocol) -> int:
        if protocol == Protocol.NFS:
            return self.settings.nfs_concurrency
        return self.settings.s3_concurrency

    def check_client_cores(self) -> None:
        cores = os.cpu_count() or 1
        if cores < self.settings.recommended_cores:
            logger.warning(
                f"Found {cores} cores, recommend at least {self.settings.recommended_cores} "
                f"cores to prevent client bottlenecks"
            )

    # Full run

    def run(self) -> ResultAggregator:
        """Discover targets, provision, test and tear down."""
        if self.provisioner is None:
            raise ProvisioningError("A management session is required to provision resources")

        self.check_client_cores()
        try:
            groups = self.provisioner.discover_data_endpoints()
            if not groups:
                raise DiscoveryError("Found no data endpoints, unable to proceed")
            targets = self.provisioner.select_targets(groups)
            logger.info(f"Will test one data endpoint in each of {len(targets)} subnets")

            if not self.settings.skip_nfs:
                self._run_nfs(targets)
            if not self.settings.skip_s3:
                self._run_s3(targets)
        finally:
            leftovers = self.provisioner.owned
            if leftovers:
                logger.info(f"Tearing down {len(leftovers)} remaining resources")
            self.results.extend_teardown_failures(self.provisioner.teardown())

        return self.results

    def run_explicit(self, protocol: Protocol, target: str, connector: DataConnector) -> ResultRecord:
        """Test a caller-supplied target without any provisioning."""
        self.check_client_cores()
        return self.run_target(protocol, target, connector)

    def run_target(self, protocol: Protocol, target: str, connector: DataConnector) -> ResultRecord:
        """Write then read against one target and record the outcome."""
        try:
            generator = LoadGenerator(connector, self.concurrency_for(protocol), target=target)
        except UnreachableTargetError as e:
            logger.error(f"{e}, skipping")
            connector.close()
            return self.results.record_failure(target, protocol, UNREACHABLE_OUTCOMES[protocol])

        with generator:
            logger.info(f"Running {protocol.value} write test against {target}")
            write_rate = generator.run_write_test(self.settings.test_duration)

            logger.info(f"Running {protocol.value} read test against {target}")
            read_rate = generator.run_read_test(self.settings.test_duration)

        return self.results.record_success(target, protocol, write_rate, read_rate)

    def _destroy(self, resource: TransientResource) -> None:
        """Best-effort teardown of one resource; failures go to the report."""
        try:
            self.provisioner.destroy(resource)
        except ProvisioningError as e:
            logger.error(f"Teardown of {resource.label} failed: {e}")
            self.provisioner.abandon(resource)
            self.results.record_teardown_failure(resource.label, str(e))

    def _run_nfs(self, targets: list[NetworkEndpoint]) -> None:
        fsname = self.filesystem_name
        logger.info(f"Checking for filesystem {fsname}")
        if self.provisioner.file_share_exists(fsname):
            raise ProvisioningError(f"File system {fsname} already exists")

        share = TransientResource(kind=ResourceKind.FILE_SHARE, name=fsname)
        for target in targets:
            self.provisioner.create_file_share(fsname)
            try:
                connector = self._nfs_connector(target.address, f"/{fsname}")
                self.run_target(Protocol.NFS, target.address, connector)
            finally:
                self._destroy(share)

    def _run_s3(self, targets: list[NetworkEndpoint]) -> None:
        account = self.object_account_name
        user = self.object_user_name
        bucket = self.bucket_name

        self.provisioner.create_object_account(account)
        self.provisioner.create_object_user(user, account)
        key = self.provisioner.create_credential(user, account)

        bucket_resource = TransientResource(kind=ResourceKind.BUCKET, name=bucket)
        for target in targets:
            self.provisioner.create_bucket(bucket, account)
            try:
                connector = self._s3_connector(target.address, key, bucket)
                self.run_target(Protocol.S3, target.address, connector)
            finally:
                self._destroy(bucket_resource)

        for resource in (
            TransientResource(kind=ResourceKind.OBJECT_CREDENTIAL, name=key.name),
            TransientResource(kind=ResourceKind.OBJECT_USER, name=user, account=account),
            TransientResource(kind=ResourceKind.OBJECT_ACCOUNT, name=account),
        ):
            self._destroy(resource)
