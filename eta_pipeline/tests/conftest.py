"""
Shared pytest fixtures for ETA pipeline tests.

This module provides reusable fixtures that simplify test setup
and reduce code duplication across test modules.
"""
import copy
import dataclasses
import json
import threading
from datetime import datetime, timezone

import pytest

from eta_pipeline.ingestion import CallableAdapter
from eta_pipeline.ingestion.fixture_adapter import MOCK_RESPONSES_DIR
from eta_pipeline.registry import ALL_SOURCE_TYPES, SourceRegistry, get_default_configs
from eta_pipeline.storage import CacheStore

# Monday, 09:00 UTC: morning band, fall season
FIXED_NOW = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


def fast_registry(**overrides_by_type):
    """
    Registry of the default configs with short timeouts and no retries.

    Keyword arguments map a source type to DataSourceConfig field overrides.
    """
    configs = []
    for config in get_default_configs():
        changes = {"timeout_seconds": 1.0, "retry_count": 0}
        changes.update(overrides_by_type.get(config.source_type, {}))
        configs.append(dataclasses.replace(config, **changes))
    return SourceRegistry(configs)


def serve(payload):
    """Adapter function that returns a fresh copy of payload on every call."""
    return lambda context: copy.deepcopy(payload)


def fail_with(error):
    def fetch(context):
        raise error
    return fetch


def register_payloads(registry, payloads, **fetch_fns):
    """
    Register a CallableAdapter for every source type.

    Sources named in fetch_fns use that function; the rest serve payloads.
    """
    for source_type in registry.source_types:
        fn = fetch_fns.get(source_type) or serve(payloads[source_type])
        registry.register_adapter(source_type, CallableAdapter(source_type, fn))
    return registry


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def cache(fake_clock):
    """Cache on a fake clock."""
    return CacheStore(clock=fake_clock)


@pytest.fixture
def payloads():
    """
    Recorded provider responses for all seven source types.

    Returns:
        Dict of source type -> raw payload
    """
    result = {}
    for source_type in ALL_SOURCE_TYPES:
        with open(MOCK_RESPONSES_DIR / f"{source_type}.json") as f:
            result[source_type] = json.load(f)
    return result


@pytest.fixture
def registry():
    return fast_registry()


@pytest.fixture
def release():
    """
    Event that blocked fake adapters wait on.

    Set on teardown so no worker thread outlives its test.
    """
    event = threading.Event()
    yield event
    event.set()


@pytest.fixture
def fixed_now():
    return FIXED_NOW
