"""Pytest configuration and shared fixtures for Smooth Operator tests."""

import sys

import pytest

from smooth_operator.server.installer import InstallationManager
from smooth_operator.server.process import ProcessSupervisor
from smooth_operator.testing_utils import STUB_EXECUTABLE, FakeClock, make_bundle


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "e2e: mark test as an end-to-end test")
    config.addinivalue_line("markers", "slow: mark test as slow to run")


class RecordingSupervisor(ProcessSupervisor):
    """Launches stub_server.py with the current interpreter and keeps every handle."""

    def __init__(self, **kwargs):
        kwargs.setdefault("shutdown_grace_ms", 2000)
        super().__init__(
            executable_name=STUB_EXECUTABLE, launcher=[sys.executable], **kwargs
        )
        self.spawned = []
        self.terminated = []

    def spawn(self, install_dir, handshake_file_name, api_key=None):
        handle = super().spawn(install_dir, handshake_file_name, api_key)
        self.spawned.append(handle)
        return handle

    def terminate(self, handle):
        self.terminated.append(handle)
        super().terminate(handle)


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def bundle_dir(tmp_path):
    """Bundle whose stub reports port 54321 and then idles."""
    return make_bundle(tmp_path / "bundle")


@pytest.fixture
def install_dir(tmp_path):
    return tmp_path / "appdata" / "SmoothOperator" / "AgentToolsServer"


@pytest.fixture
def installer(install_dir, bundle_dir):
    return InstallationManager(install_dir=install_dir, bundle_dir=bundle_dir)


@pytest.fixture
def supervisor():
    sup = RecordingSupervisor()
    yield sup
    # Never leak a stub process, whatever the test did
    for handle in sup.spawned:
        if not handle.released:
            ProcessSupervisor.terminate(sup, handle)
