"""
Pytest configuration and shared fixtures.
Provides an in-memory persistence area, a deterministic clock and a fully
registered store registry that can be used across all test files.
"""
import pytest
from datetime import UTC, datetime, timedelta

from clientdesk.constants import StoreName
from clientdesk.services import CLIENT_VALIDATOR, PROJECT_VALIDATOR
from clientdesk.storage import MemoryArea, RecordStore, StoreOptions, StoreRegistry


class FakeClock:
    """Clock that advances one second every time it is read."""

    def __init__(self, start=None, step=timedelta(seconds=1)):
        self.current = start or datetime(2026, 3, 10, 9, 0, 0, tzinfo=UTC)
        self.step = step

    def __call__(self):
        value = self.current
        self.current = self.current + self.step
        return value

    def set(self, value):
        self.current = value


def build_registry(area, clock):
    """
    Helper function to build a registry with the entity stores.
    Validators match the application factory; exit flushing is off.
    """
    registry = StoreRegistry(clock=clock)
    validators = {
        StoreName.CLIENTS: CLIENT_VALIDATOR,
        StoreName.PROJECTS: PROJECT_VALIDATOR,
        StoreName.QUOTES: None,
        StoreName.CONTRACTS: None,
        StoreName.TRANSACTIONS: None,
    }
    for name, validator in validators.items():
        registry.register(name, RecordStore(
            name,
            area=area,
            validator=validator,
            options=StoreOptions(auto_save=False),
            clock=clock,
        ))
    return registry


@pytest.fixture
def area():
    """Create an empty in-memory persistence area."""
    return MemoryArea()


@pytest.fixture
def clock():
    """Create a deterministic clock."""
    return FakeClock()


@pytest.fixture
def make_store(area, clock):
    """Factory for record stores sharing the test area and clock."""
    def _make(name="items", validator=None, options=None, **kwargs):
        return RecordStore(
            name,
            area=kwargs.pop("area", area),
            validator=validator,
            options=options or StoreOptions(auto_save=False),
            clock=clock,
            **kwargs
        )
    return _make


@pytest.fixture
def registry(area, clock):
    """Create a registry with clients, projects, quotes, contracts and transactions."""
    return build_registry(area, clock)


@pytest.fixture
def registry_factory(clock):
    """Factory for additional registries sharing the test clock."""
    def _make(area=None):
        return build_registry(area or MemoryArea(), clock)
    return _make
