import asyncio
import copy
import signal
from pathlib import Path

import pytest

from nextbridge.core.config import BridgeConfig, PluginConfig
from nextbridge.models.descriptor import ServiceDescriptor
from nextbridge.services.process import SpawnedProcess

ENDPOINT = "http://localhost:12000"

SERVICE = {
    "service": "storefront",
    "provider": {
        "name": "aws",
        "stage": "dev",
        "environment": {"API_URL": "https://api.example.com", "SHARED": "provider"},
        "ecr": {"images": {"app": {"path": "./"}}},
    },
    "custom": {"next": {"port": 3000}},
    "functions": {
        "next": {
            "image": {"command": ["next@http://localhost:3000"]},
            "environment": {"SHARED": "function"},
            "events": [{"httpApi": "*"}],
        },
    },
}


@pytest.fixture
def service_dict():
    return copy.deepcopy(SERVICE)


@pytest.fixture
def service(service_dict, tmp_path) -> ServiceDescriptor:
    return ServiceDescriptor.from_dict(service_dict, service_path=Path(tmp_path))


@pytest.fixture
def function(service):
    return service.functions["next"]


@pytest.fixture
def plugin_config(service) -> PluginConfig:
    return PluginConfig.from_custom(service.custom, "next")


@pytest.fixture
def bridge_config() -> BridgeConfig:
    return BridgeConfig(_env_file=None, READINESS_TIMEOUT=5.0, READINESS_INTERVAL=0.05)


class FakeProcess:
    """Stands in for asyncio.subprocess.Process; exits when told to or when terminated."""

    def __init__(self, pid=4242):
        self.pid = pid
        self.returncode = None
        self.signals = []
        self._exited = asyncio.Event()

    def exit(self, code=0):
        if self.returncode is None:
            self.returncode = code
        self._exited.set()

    async def wait(self):
        await self._exited.wait()
        return self.returncode

    def send_signal(self, sig):
        self.signals.append(sig)

    def terminate(self):
        self.signals.append(signal.SIGTERM)
        self.exit(-signal.SIGTERM)

    def kill(self):
        self.signals.append(signal.SIGKILL)
        self.exit(-signal.SIGKILL)


class StubSpawner:
    def __init__(self, process, endpoint=ENDPOINT):
        self.process = process
        self.endpoint = endpoint
        self.calls = []

    async def spawn(self, command, environment, on_spawn=None):
        self.calls.append((command, dict(environment)))
        if on_spawn is not None:
            on_spawn(self.process)
        return SpawnedProcess(process=self.process, endpoint=self.endpoint, port=12000)


@pytest.fixture
def fake_process():
    return FakeProcess()


@pytest.fixture
def stub_spawner(fake_process):
    return StubSpawner(fake_process)
