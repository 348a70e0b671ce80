"""
Ingestion layer for the ETA data pipeline.

Provides the uniform adapter contract, the shipped adapters and the
concurrent collection stage:
- SourceAdapter / FetchContext: the fetch(context) capability
- FixtureAdapter: recorded provider responses (mock mode)
- CallableAdapter: any function as a source
- OpenWeatherAdapter, MapboxDirectionsAdapter: live HTTP providers
- Collector: fan-out/fan-in collection with timeouts, retries and fallbacks
"""
from .base_adapter import FetchContext, SourceAdapter, SourceHealth
from .collector import CollectedSource, CollectionOrigin, CollectionResult, Collector
from .directions_adapter import MapboxDirectionsAdapter
from .fixture_adapter import CallableAdapter, FixtureAdapter
from .http_client import CircuitBreaker, CircuitOpenError, HttpClient, RetryConfig
from .weather_adapter import OpenWeatherAdapter

__all__ = [
    "CallableAdapter",
    "CircuitBreaker",
    "CircuitOpenError",
    "CollectedSource",
    "CollectionOrigin",
    "CollectionResult",
    "Collector",
    "FetchContext",
    "FixtureAdapter",
    "HttpClient",
    "MapboxDirectionsAdapter",
    "OpenWeatherAdapter",
    "RetryConfig",
    "SourceAdapter",
    "SourceHealth",
]
