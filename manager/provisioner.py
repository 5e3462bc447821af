"""Provisioning and teardown of the transient resources a run needs."""

from __future__ import annotations

import logging
from typing import Optional

from pydantic import ValidationError

from common.exceptions import DiscoveryError, ProvisioningError, RequestError
from common.models.network import EndpointRole, NetworkEndpoint, NetworkInterface
from common.models.resources import (
    AccessKey,
    FileShareOptions,
    ResourceKind,
    TransientResource,
)
from common.models.results import TeardownFailure
from manager.session import ManagementSession

logger = logging.getLogger(__name__)


def _names(name: str) -> dict[str, str]:
    return {"names": name}


def _user_name(name: str, account: str) -> str:
    return f"{account}/{name}"


class ResourceProvisioner:
    """Create and destroy file shares, buckets and object store identities.

    Every resource created here is recorded in an ordered ledger and dropped
    from it once its teardown succeeds, so :meth:`teardown` can clean up
    whatever a failed run left behind.
    """

    def __init__(self, session: ManagementSession):
        self.session = session
        self._owned: list[TransientResource] = []

    @property
    def owned(self) -> list[TransientResource]:
        return list(self._owned)

    def _own(self, kind: ResourceKind, name: str, account: Optional[str] = None) -> None:
        self._owned.append(TransientResource(kind=kind, name=name, account=account))

    def _release(self, kind: ResourceKind, name: str) -> None:
        self._owned = [r for r in self._owned if not (r.kind == kind and r.name == name)]

    def abandon(self, resource: TransientResource) -> None:
        """Stop tracking a resource whose teardown failed, so it is not attempted again."""
        logger.warning(f"Abandoning {resource.label}")
        self._release(resource.kind, resource.name)

    # Discovery

    def discover_data_endpoints(self) -> dict[str, list[NetworkEndpoint]]:
        """Group data endpoints by subnet, in listing order."""
        try:
            items = self.session.list_items("network-interfaces")
            interfaces = [NetworkInterface(**item) for item in items]
        except RequestError as e:
            raise DiscoveryError(f"Unable to list network interfaces: {e}") from e
        except (ValidationError, TypeError) as e:
            raise DiscoveryError(f"Malformed network interface listing: {e}") from e

        groups: dict[str, list[NetworkEndpoint]] = {}
        for iface in interfaces:
            if not iface.is_data:
                continue
            endpoint = NetworkEndpoint.from_interface(iface, EndpointRole.DATA)
            groups.setdefault(endpoint.subnet, []).append(endpoint)

        logger.info(f"Found {len(groups)} subnets with data endpoints")
        return groups

    @staticmethod
    def select_targets(groups: dict[str, list[NetworkEndpoint]]) -> list[NetworkEndpoint]:
        """Pick one data endpoint per subnet."""
        targets = []
        for subnet, endpoints in groups.items():
            if not endpoints:
                continue
            logger.info(
                f"Found {len(endpoints)} data endpoints in subnet {subnet}, "
                f"will use: {endpoints[0].address}"
            )
            targets.append(endpoints[0])
        return targets

    # File shares

    def file_share_exists(self, name: str) -> bool:
        try:
            response = self.session.request_json("GET", "file-systems", params=_names(name))
        except RequestError as e:
            if e.status_code in (400, 404):
                return False
            raise ProvisioningError(f"Unable to look up file system {name}: {e}") from e
        return bool(response.get("items"))

    def create_file_share(self, name: str, options: Optional[FileShareOptions] = None) -> None:
        """Create an NFS-exported file share; an existing name is an error."""
        if self.file_share_exists(name):
            raise ProvisioningError(f"File system {name} already exists")

        options = options or FileShareOptions()
        logger.info(f"Creating file system {name}")
        try:
            self.session.request("POST", "file-systems", params=_names(name), body=options.to_body())
        except RequestError as e:
            raise ProvisioningError(f"Unable to create file system {name}: {e}") from e
        self._own(ResourceKind.FILE_SHARE, name)

    def destroy_file_share(self, name: str) -> None:
        """Disable the export, destroy, then eradicate a file share.

        A failing step raises and the later steps are not attempted.
        """
        steps = [
            ("disable NFS", "PATCH", {"nfs": {"enabled": False}}),
            ("destroy", "PATCH", {"destroyed": True}),
            ("eradicate", "DELETE", None),
        ]
        logger.info(f"Deleting file system {name}")
        for step, method, body in steps:
            try:
                self.session.request(method, "file-systems", params=_names(name), body=body)
            except RequestError as e:
                raise ProvisioningError(f"Unable to {step} file system {name}: {e}") from e
        self._release(ResourceKind.FILE_SHARE, name)

    # Object store

    def create_object_account(self, name: str) -> None:
        logger.info(f"Creating object store account {name}")
        try:
            self.session.request("POST", "object-store-accounts", params=_names(name))
        except RequestError as e:
            raise ProvisioningError(f"Unable to create object store account {name}: {e}") from e
        self._own(ResourceKind.OBJECT_ACCOUNT, name)

    def destroy_object_account(self, name: str) -> None:
        logger.info(f"Deleting object store account {name}")
        try:
            self.session.request("DELETE", "object-store-accounts", params=_names(name))
        except RequestError as e:
            raise ProvisioningError(f"Unable to delete object store account {name}: {e}") from e
        self._release(ResourceKind.OBJECT_ACCOUNT, name)

    def create_object_user(self, name: str, account: str) -> None:
        logger.info(f"Creating object store user {_user_name(name, account)}")
        try:
            self.session.request("POST", "object-store-users", params=_names(_user_name(name, account)))
        except RequestError as e:
            raise ProvisioningError(f"Unable to create object store user {name}: {e}") from e
        self._own(ResourceKind.OBJECT_USER, name, account=account)

    def destroy_object_user(self, name: str, account: str) -> None:
        logger.info(f"Deleting object store user {_user_name(name, account)}")
        try:
            self.session.request("DELETE", "object-store-users", params=_names(_user_name(name, account)))
        except RequestError as e:
            raise ProvisioningError(f"Unable to delete object store user {name}: {e}") from e
        self._release(ResourceKind.OBJECT_USER, name)

    def create_credential(self, user: str, account: str) -> AccessKey:
        """Create an access key for an object store user."""
        logger.info(f"Creating object store access key for {_user_name(user, account)}")
        body = {"user": {"name": _user_name(user, account)}}
        try:
            response = self.session.request_json("POST", "object-store-access-keys", body=body)
        except RequestError as e:
            raise ProvisioningError(f"Unable to create access key for {user}: {e}") from e

        items = response.get("items") or []
        if not items:
            raise ProvisioningError(f"No access key returned for {user}")

        item = items[0]
        try:
            key = AccessKey(
                name=item["name"],
                secret_access_key=item.get("secret_access_key", ""),
                user=(item.get("user") or {}).get("name"),
                enabled=item.get("enabled", True),
                created=item.get("created"),
            )
        except (KeyError, ValidationError) as e:
            raise ProvisioningError(f"Malformed access key for {user}: {e}") from e

        self._own(ResourceKind.OBJECT_CREDENTIAL, key.name)
        return key

    def destroy_credential(self, name: str) -> None:
        logger.info(f"Deleting object store access key {name}")
        try:
            self.session.request("DELETE", "object-store-access-keys", params=_names(name))
        except RequestError as e:
            raise ProvisioningError(f"Unable to delete access key {name}: {e}") from e
        self._release(ResourceKind.OBJECT_CREDENTIAL, name)

    def create_bucket(self, name: str, owner: str) -> None:
        logger.info(f"Creating bucket {name}")
        try:
            self.session.request("POST", "buckets", params=_names(name), body={"account": {"name": owner}})
        except RequestError as e:
            raise ProvisioningError(f"Unable to create bucket {name}: {e}") from e
        self._own(ResourceKind.BUCKET, name)

    def destroy_bucket(self, name: str) -> None:
        """Destroy then eradicate a bucket."""
        logger.info(f"Deleting bucket {name}")
        try:
            self.session.request("PATCH", "buckets", params=_names(name), body={"destroyed": True})
            self.session.request("DELETE", "buckets", params=_names(name))
        except RequestError as e:
            raise ProvisioningError(f"Unable to delete bucket {name}: {e}") from e
        self._release(ResourceKind.BUCKET, name)

    # Teardown

    def destroy(self, resource: TransientResource) -> None:
        """Destroy one resource according to its kind."""
        if resource.kind == ResourceKind.FILE_SHARE:
            self.destroy_file_share(resource.name)
        elif resource.kind == ResourceKind.BUCKET:
            self.destroy_bucket(resource.name)
        elif resource.kind == ResourceKind.OBJECT_CREDENTIAL:
            self.destroy_credential(resource.name)
        elif resource.kind == ResourceKind.OBJECT_USER:
            self.destroy_object_user(resource.name, resource.account or "")
        elif resource.kind == ResourceKind.OBJECT_ACCOUNT:
            self.destroy_object_account(resource.name)
        else:
            raise ProvisioningError(f"Unknown resource kind: {resource.kind}")

    def teardown(self) -> list[TeardownFailure]:
        """Destroy everything still owned, newest first.

        Every resource is attempted regardless of earlier failures.
        """
        failures = []
        for resource in reversed(self.owned):
            try:
                self.destroy(resource)
            except ProvisioningError as e:
                logger.error(f"Teardown of {resource.label} failed: {e}")
                failures.append(TeardownFailure(resource=resource.label, error=str(e)))
        return failures
