"""Shared fixtures for configuration profile tests."""

from datetime import datetime, timezone

import pytest

from nexusflow_config.models.schemas import ConfigurationProfile
from nexusflow_config.profiles.manager import ProfileManager
from nexusflow_config.service import ConfigurationService
from nexusflow_config.storage.backends import MemoryBackend
from nexusflow_config.storage.persistence import ProfileStore
from nexusflow_config.utils.clock import ManualClock


@pytest.fixture()
def clock():
    """Virtual clock doubling as the autosave scheduler."""
    return ManualClock(datetime(2024, 1, 1, tzinfo=timezone.utc))


@pytest.fixture()
def backend():
    return MemoryBackend()


@pytest.fixture()
def store(backend, clock):
    return ProfileStore(backend=backend, clock=clock, scheduler=clock)


@pytest.fixture()
def manager(store):
    return ProfileManager(store)


@pytest.fixture()
def service(manager):
    service = ConfigurationService(manager)
    service.load_config()
    return service


@pytest.fixture()
def make_profile():
    """Factory for profiles with fixed timestamps."""

    def _make(profile_id="test-id", name="Test Profile", settings=None):
        stamp = datetime(2023, 1, 1, tzinfo=timezone.utc)
        return ConfigurationProfile(
            id=profile_id,
            name=name,
            settings=settings if settings is not None else {"theme": "dark"},
            created_at=stamp,
            updated_at=stamp,
            version=1,
        )

    return _make
