"""
Shared fixtures for validatornet tests.
"""

import pytest

from validatornet.config import NetworkConfig

from fakes import ARCHIVER, FakeNetwork


@pytest.fixture
def network():
    return FakeNetwork()


@pytest.fixture
def config(tmp_path):
    return NetworkConfig(base_dir=str(tmp_path), archivers=[ARCHIVER])
