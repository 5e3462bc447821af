"""Pytest configuration and shared fixtures."""

import json
import shutil
import tempfile
import threading
import time
from pathlib import Path
from typing import Generator, Optional

import httpx
import pytest

from manager.config import Settings
from manager.provisioner import ResourceProvisioner
from manager.session import ManagementSession, SUPPORTED_REST_VERSIONS

API_TOKEN = "T-0123-api-token"
SESSION_TOKEN = "session-token-42"


def _error(status: int, message: str) -> httpx.Response:
    return httpx.Response(status, json={"errors": [{"message": message}]})


def _items(items: list[dict], token: Optional[str] = None) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "items": items,
            "pagination_info": {"total_item_count": len(items), "continuation_token": token},
        },
    )


class FakeArray:
    """In-memory stand-in for the array management REST API."""

    def __init__(self, versions: Optional[list[str]] = None, interfaces: Optional[list[dict]] = None):
        self.versions = list(versions) if versions is not None else list(SUPPORTED_REST_VERSIONS)
        self.interfaces = interfaces or []
        self.page_size: Optional[int] = None

        self.file_systems: dict[str, dict] = {}
        self.accounts: set[str] = set()
        self.users: set[str] = set()
        self.access_keys: dict[str, str] = {}
        self.buckets: dict[str, dict] = {}

        self.requests: list[tuple[str, str, dict]] = []
        self.failures: dict[tuple[str, str], int] = {}
        self.logged_out = False
        self._key_counter = 0

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)

    def fail(self, method: str, resource: str, status: int = 500) -> None:
        self.failures[(method, resource)] = status

    def calls(self, resource: str) -> list[tuple[str, dict]]:
        return [(m, p) for m, path, p in self.requests if path.endswith("/" + resource)]

    @property
    def is_empty(self) -> bool:
        return not (self.file_systems or self.accounts or self.users or self.access_keys or self.buckets)

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path
        params = dict(request.url.params)
        self.requests.append((method, path, params))

        if path == "/api/api_version":
            return httpx.Response(200, json={"versions": self.versions})
        if path == "/api/login":
            if request.headers.get("api-token") != API_TOKEN:
                return _error(401, "invalid api token")
            return httpx.Response(200, headers={"x-auth-token": SESSION_TOKEN})
        if path == "/api/logout":
            self.logged_out = True
            return httpx.Response(200)

        if request.headers.get("x-auth-token") != SESSION_TOKEN:
            return _error(403, "not logged in")

        parts = path.strip("/").split("/")
        if len(parts) != 3 or parts[1] not in self.versions:
            return _error(404, "no such path")
        resource = parts[2]

        status = self.failures.get((method, resource))
        if status:
            return _error(status, "injected failure")

        body = json.loads(request.content) if request.content else {}
        handler = getattr(self, "_" + resource.replace("-", "_"), None)
        if handler is None:
            return _error(404, "no such resource")
        return handler(method, params.get("names"), body, params)

    def _network_interfaces(self, method, name, body, params) -> httpx.Response:
        if self.page_size is None:
            return _items(self.interfaces)
        start = int(params.get("continuation_token") or 0)
        end = start + self.page_size
        token = str(end) if end < len(self.interfaces) else None
        return _items(self.interfaces[start:end], token)

    def _file_systems(self, method, name, body, params) -> httpx.Response:
        fs = self.file_systems.get(name)
        if method == "POST":
            if fs is not None:
                return _error(400, "file system already exists")
            fs = {"name": name, "destroyed": False, "nfs": {}, **body}
            self.file_systems[name] = fs
            return _items([fs])
        if fs is None:
            return _error(400, "file system does not exist")
        if method == "GET":
            return _items([fs])
        if method == "PATCH":
            if "nfs" in body:
                fs["nfs"].update(body["nfs"])
            if "destroyed" in body:
                fs["destroyed"] = body["destroyed"]
            return _items([fs])
        if method == "DELETE":
            if not fs["destroyed"]:
                return _error(400, "file system must be destroyed before eradication")
            del self.file_systems[name]
            return httpx.Response(200)
        return _error(405, "method not allowed")

    def _object_store_accounts(self, method, name, body, params) -> httpx.Response:
        if method == "POST":
            if name in self.accounts:
                return _error(400, "account already exists")
            self.accounts.add(name)
            return _items([{"name": name}])
        if method == "DELETE":
            if name not in self.accounts:
                return _error(400, "account does not exist")
            if any(u.startswith(name + "/") for u in self.users):
                return _error(400, "account still has users")
            self.accounts.remove(name)
            return httpx.Response(200)
        return _error(405, "method not allowed")

    def _object_store_users(self, method, name, body, params) -> httpx.Response:
        if method == "POST":
            account = name.split("/")[0]
            if account not in self.accounts or name in self.users:
                return _error(400, "cannot create user")
            self.users.add(name)
            return _items([{"name": name}])
        if method == "DELETE":
            if name not in self.users:
                return _error(400, "user does not exist")
            self.users.remove(name)
            return httpx.Response(200)
        return _error(405, "method not allowed")

    def _object_store_access_keys(self, method, name, body, params) -> httpx.Response:
        if method == "POST":
            user = body.get("user", {}).get("name")
            if user not in self.users:
                return _error(400, "user does not exist")
            self._key_counter += 1
            key_name = f"PSFBKEY{self._key_counter:04d}"
            self.access_keys[key_name] = user
            return _items([{
                "name": key_name,
                "secret_access_key": f"secret-{self._key_counter}",
                "user": {"name": user},
                "enabled": True,
                "created": 1700000000,
            }])
        if method == "DELETE":
            if name not in self.access_keys:
                return _error(400, "access key does not exist")
            del self.access_keys[name]
            return httpx.Response(200)
        return _error(405, "method not allowed")

    def _buckets(self, method, name, body, params) -> httpx.Response:
        bucket = self.buckets.get(name)
        if method == "POST":
            account = body.get("account", {}).get("name")
            if bucket is not None or account not in self.accounts:
                return _error(400, "cannot create bucket")
            self.buckets[name] = {"name": name, "account": account, "destroyed": False}
            return _items([self.buckets[name]])
        if bucket is None:
            return _error(400, "bucket does not exist")
        if method == "PATCH":
            bucket["destroyed"] = body.get("destroyed", bucket["destroyed"])
            return _items([bucket])
        if method == "DELETE":
            if not bucket["destroyed"]:
                return _error(400, "bucket must be destroyed first")
            del self.buckets[name]
            return httpx.Response(200)
        return _error(405, "method not allowed")


def make_interface(name: str, address: str, subnet: str, services: list[str]) -> dict:
    return {
        "id": f"id-{name}",
        "name": name,
        "address": address,
        "enabled": True,
        "mtu": 9000,
        "netmask": "255.255.255.0",
        "services": services,
        "subnet": {"id": f"id-{subnet}", "name": subnet, "resource_type": "subnets"},
        "type": "vip",
        "vlan": 0,
    }


class MemoryStore:
    """Object sizes shared by the fake connections of one connector."""

    def __init__(self):
        self._lock = threading.Lock()
        self.sizes: dict[str, int] = {}
        self.opens: dict[str, int] = {}

    def add(self, name: str, nbytes: int) -> None:
        with self._lock:
            self.sizes[name] = self.sizes.get(name, 0) + nbytes

    def opened(self, name: str) -> None:
        with self._lock:
            self.opens[name] = self.opens.get(name, 0) + 1


class FakeWriter:
    def __init__(self, store: MemoryStore, name: str, fail_after: Optional[int], delay: float):
        self.store = store
        self.name = name
        self.fail_after = fail_after
        self.delay = delay
        self.writes = 0

    def write(self, data: bytes) -> int:
        if self.fail_after is not None and self.writes >= self.fail_after:
            raise IOError(f"write to {self.name} failed")
        time.sleep(self.delay)
        self.writes += 1
        self.store.add(self.name, len(data))
        return len(data)

    def close(self) -> None:
        pass


class FakeReader:
    def __init__(self, size: int, delay: float):
        self.remaining = size
        self.delay = delay

    def read(self, size: int) -> bytes:
        time.sleep(self.delay)
        n = min(size, self.remaining)
        self.remaining -= n
        return b"r" * n

    def close(self) -> None:
        pass


class FakeConnection:
    def __init__(self, connector: "FakeConnector"):
        self.connector = connector
        self.closed = False

    def open_for_write(self, name: str) -> FakeWriter:
        if name in self.connector.unopenable:
            raise ConnectionError(f"cannot open {name}")
        self.connector.store.opened(name)
        return FakeWriter(self.connector.store, name, self.connector.fail_after_writes, self.connector.delay)

    def open_for_read(self, name: str) -> FakeReader:
        if name in self.connector.unopenable:
            raise ConnectionError(f"cannot open {name}")
        self.connector.store.opened(name)
        return FakeReader(self.connector.store.sizes.get(name, 0), self.connector.delay)

    def close(self) -> None:
        self.closed = True


class FakeConnector:
    """DataConnector over an in-memory store."""

    def __init__(
        self,
        protocol: str = "s3",
        name_prefix: str = "objname",
        reachable: bool = True,
        write_size: int = 1024,
        read_size: int = 256,
        fail_after_writes: Optional[int] = None,
        delay: float = 0.001,
    ):
        self.protocol = protocol
        self.name_prefix = name_prefix
        self.reachable = reachable
        self.write_size = write_size
        self.read_size = read_size
        self.fail_after_writes = fail_after_writes
        self.delay = delay
        self.unopenable: set[str] = set()

        self.store = MemoryStore()
        self.connections: list[FakeConnection] = []
        self._lock = threading.Lock()
        self.verify_calls = 0
        self.closed = False

    def verify_reachable(self) -> bool:
        self.verify_calls += 1
        return self.reachable

    def connect(self) -> FakeConnection:
        connection = FakeConnection(self)
        with self._lock:
            self.connections.append(connection)
        return connection

    def close(self) -> None:
        self.closed = True


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for tests."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def fake_array() -> FakeArray:
    """Array with two data subnets and one management interface."""
    return FakeArray(interfaces=[
        make_interface("mgmt0", "10.0.0.10", "mgmt-net", ["management"]),
        make_interface("data1", "10.1.0.10", "data-net-1", ["data"]),
        make_interface("data2", "10.1.0.11", "data-net-1", ["data"]),
        make_interface("data3", "10.2.0.10", "data-net-2", ["data"]),
    ])


@pytest.fixture
def session(fake_array: FakeArray) -> Generator[ManagementSession, None, None]:
    """Authenticated session against the fake array."""
    session = ManagementSession.connect("array.example.com", API_TOKEN, transport=fake_array.transport())
    yield session
    session.close()


@pytest.fixture
def provisioner(session: ManagementSession) -> ResourceProvisioner:
    return ResourceProvisioner(session)


@pytest.fixture
def settings() -> Settings:
    """Run settings with short test windows."""
    return Settings(
        mgmt_vip="array.example.com",
        token=API_TOKEN,
        test_duration=0.05,
        nfs_concurrency=4,
        s3_concurrency=4,
    )
