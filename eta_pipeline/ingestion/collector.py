"""
Collection stage: concurrent fetch of every registered source.

For each source type, in parallel:
1. Serve a fresh cache entry if one exists
2. Otherwise call the registered adapter, bounded by the source's timeout
   and retried up to its retry count
3. On success, apply the optional transform hook and refresh the cache
4. On exhausted failure, apply the source's fallback strategy

Design decisions:
- Fan-out uses one worker per source; each fetch attempt runs on a separate
  attempt pool so a hung adapter only costs its own timeout
- The attempt pool is shut down without waiting, so abandoned attempts
  never hold up the stage
- Workers return outcomes instead of appending to shared lists; the stage
  aggregates them in registry order, which keeps the result deterministic
- Alternative-source fallback is a single hop and never applies the
  substitute's own fallback, so fallback cycles are impossible
"""
import copy
import logging
import time
import traceback
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import PipelineCancelledError, SourceFetchError
from ..registry import DataSourceConfig, FallbackStrategy, SourceRegistry
from ..storage import CacheStore, cache_key
from .base_adapter import FetchContext, SourceHealth

logger = logging.getLogger(__name__)

# How often a waiting worker re-checks the cancel event
CANCEL_POLL_SECONDS = 0.05


class CollectionOrigin(Enum):
    """Where a collected payload came from."""
    FRESH = "fresh"
    CACHE = "cache"
    STALE_CACHE = "stale_cache"
    ALTERNATIVE_SOURCE = "alternative_source"
    HISTORICAL_AVERAGE = "historical_average"


@dataclass
class CollectedSource:
    """
    Raw payload collected for one source slot.

    ``provider`` is the source type whose adapter (or baseline) produced the
    payload. It differs from ``source_type`` only after an
    alternative-source fallback, and decides which validation rules and
    payload shape apply downstream.
    """
    source_type: str
    provider: str
    data: Dict[str, Any]
    origin: CollectionOrigin
    fetched_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def is_fallback(self) -> bool:
        return self.origin in (
            CollectionOrigin.STALE_CACHE,
            CollectionOrigin.ALTERNATIVE_SOURCE,
            CollectionOrigin.HISTORICAL_AVERAGE,
        )


@dataclass
class CollectionResult:
    """Output of the collection stage."""
    collected_data: Dict[str, CollectedSource]
    collection_timestamp: datetime
    sources_collected: List[str]
    sources_failed: List[str]
    fallbacks_triggered: List[str]
    source_health: Dict[str, SourceHealth] = field(default_factory=dict)

    def to_context(self) -> Dict[str, Any]:
        """Keys merged into the running pipeline context."""
        return {
            "collected_data": self.collected_data,
            "collection_timestamp": self.collection_timestamp,
            "sources_collected": list(self.sources_collected),
            "sources_failed": list(self.sources_failed),
            "fallbacks_triggered": list(self.fallbacks_triggered),
            "source_health": dict(self.source_health),
        }


@dataclass
class _SourceOutcome:
    source_type: str
    collected: Optional[CollectedSource]
    failed: bool
    cancelled: bool = False


class Collector:
    """Fetches every registered source concurrently under its own budget."""

    def __init__(
        self,
        registry: SourceRegistry,
        cache: CacheStore,
        retry_backoff_seconds: float = 0.0,
        max_attempt_workers: Optional[int] = None,
    ):
        """
        Initialize the collector.

        Args:
            registry: Source configurations and adapters
            cache: Shared cache of last-known-good data
            retry_backoff_seconds: Base delay between attempts, doubled per
                retry. Zero retries immediately.
            max_attempt_workers: Size of the attempt pool. Defaults to room
                for every attempt of every source plus one alternative hop
                each, so a hung adapter can never starve another source.
        """
        self.registry = registry
        self.cache = cache
        self.retry_backoff_seconds = retry_backoff_seconds
        self.max_attempt_workers = max_attempt_workers

    def collect(self, context: FetchContext) -> CollectionResult:
        """
        Collect data from all registered sources.

        Never raises for ordinary source failures.

        Raises:
            PipelineCancelledError: If the invocation's cancel event is set
        """
        source_types = self.registry.source_types
        logger.info(
            f"Collecting {len(source_types)} sources for driver {context.driver_id} "
            f"and load {context.load_id}"
        )

        attempt_pool = ThreadPoolExecutor(
            max_workers=self._attempt_pool_size(source_types),
            thread_name_prefix="eta-fetch",
        )
        try:
            with ThreadPoolExecutor(
                max_workers=max(1, len(source_types)),
                thread_name_prefix="eta-collect",
            ) as fanout:
                futures = {
                    source_type: fanout.submit(self._collect_source, source_type, context, attempt_pool)
                    for source_type in source_types
                }
                outcomes = [futures[source_type].result() for source_type in source_types]
        finally:
            attempt_pool.shutdown(wait=False, cancel_futures=True)

        if context.cancelled or any(o.cancelled for o in outcomes):
            raise PipelineCancelledError(
                f"Collection cancelled for driver {context.driver_id} / load {context.load_id}"
            )

        result = CollectionResult(
            collected_data={},
            collection_timestamp=datetime.now(timezone.utc),
            sources_collected=[],
            sources_failed=[],
            fallbacks_triggered=[],
            source_health=self._health_snapshot(source_types),
        )
        for outcome in outcomes:
            if outcome.collected is not None:
                result.collected_data[outcome.source_type] = outcome.collected
            if not outcome.failed:
                result.sources_collected.append(outcome.source_type)
                continue
            result.sources_failed.append(outcome.source_type)
            if outcome.collected is not None:
                result.fallbacks_triggered.append(outcome.source_type)

        logger.info(
            f"Collection finished: {len(result.sources_collected)} collected, "
            f"{len(result.sources_failed)} failed, "
            f"{len(result.fallbacks_triggered)} fallbacks"
        )
        return result

    def _collect_source(
        self,
        source_type: str,
        context: FetchContext,
        attempt_pool: ThreadPoolExecutor,
    ) -> _SourceOutcome:
        config = self.registry.get_config(source_type)

        try:
            collected = self._fetch_fresh(config, context, attempt_pool)
            return _SourceOutcome(source_type, collected, failed=False)
        except PipelineCancelledError:
            return _SourceOutcome(source_type, None, failed=True, cancelled=True)
        except Exception as e:
            logger.error(f"Error collecting data from {source_type}: {e}")
            logger.debug("Full traceback:\n%s", traceback.format_exc())

        try:
            fallback = self._apply_fallback(config, context, attempt_pool)
        except PipelineCancelledError:
            return _SourceOutcome(source_type, None, failed=True, cancelled=True)
        return _SourceOutcome(source_type, fallback, failed=True)

    def _fetch_fresh(
        self,
        config: DataSourceConfig,
        context: FetchContext,
        attempt_pool: ThreadPoolExecutor,
    ) -> CollectedSource:
        """Serve the fresh cache entry or fetch, transform and cache new data."""
        key = cache_key(config.source_type, context.driver_id, context.load_id)
        cached = self.cache.get(key)
        if cached is not None:
            logger.info(f"Using cached data for {config.source_type}")
            return CollectedSource(config.source_type, config.source_type, cached, CollectionOrigin.CACHE)

        adapter = self.registry.get_adapter(config.source_type)
        if adapter is None:
            raise SourceFetchError(config.source_type, "no adapter registered")

        data = self._fetch_with_retry(config, adapter, context, attempt_pool)
        if config.transform is not None:
            data = config.transform(data)

        self.cache.put(key, data, config.cache_ttl_seconds)
        return CollectedSource(config.source_type, config.source_type, data, CollectionOrigin.FRESH)

    def _fetch_with_retry(
        self,
        config: DataSourceConfig,
        adapter: Any,
        context: FetchContext,
        attempt_pool: ThreadPoolExecutor,
    ) -> Dict[str, Any]:
        last_error: Optional[Exception] = None

        for attempt in range(config.max_attempts):
            context.raise_if_cancelled()
            future = attempt_pool.submit(adapter.fetch, context)
            try:
                return self._await_attempt(future, config, context)
            except PipelineCancelledError:
                raise
            except FutureTimeoutError:
                future.cancel()
                last_error = SourceFetchError(
                    config.source_type, f"timed out after {config.timeout_seconds}s"
                )
            except Exception as e:
                last_error = e

            logger.warning(
                f"{config.source_type} attempt {attempt + 1}/{config.max_attempts} failed: {last_error}"
            )
            if attempt + 1 < config.max_attempts and self.retry_backoff_seconds > 0:
                if context.cancel_event.wait(self.retry_backoff_seconds * (2 ** attempt)):
                    context.raise_if_cancelled()

        raise SourceFetchError(
            config.source_type,
            f"failed after {config.max_attempts} attempts: {last_error}",
        ) from last_error

    def _await_attempt(self, future: Future, config: DataSourceConfig, context: FetchContext) -> Dict[str, Any]:
        """Wait for one attempt, waking periodically to honour cancellation."""
        deadline = time.monotonic() + config.timeout_seconds
        while True:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise FutureTimeoutError()
            try:
                return future.result(timeout=min(remaining, CANCEL_POLL_SECONDS))
            except FutureTimeoutError:
                if future.done():
                    # finished after the poll gave up; its own value or exception wins
                    return future.result()
                if context.cancelled:
                    future.cancel()
                    context.raise_if_cancelled()

    def _apply_fallback(
        self,
        config: DataSourceConfig,
        context: FetchContext,
        attempt_pool: ThreadPoolExecutor,
    ) -> Optional[CollectedSource]:
        source_type = config.source_type
        strategy = config.fallback_strategy
        logger.info(f"Applying fallback strategy for {source_type}: {strategy.value}")

        if strategy is FallbackStrategy.USE_CACHED:
            key = cache_key(source_type, context.driver_id, context.load_id)
            stale = self.cache.get(key, ignore_expiry=True)
            if stale is None:
                logger.warning(f"No cached data available for {source_type}")
                return None
            logger.info(f"Using expired cached data for {source_type}")
            return CollectedSource(source_type, source_type, stale, CollectionOrigin.STALE_CACHE)

        if strategy is FallbackStrategy.USE_ALTERNATIVE_SOURCE:
            alternative = self.registry.get_config(config.alternative_source)
            logger.info(f"Using {alternative.source_type} as alternative to {source_type}")
            try:
                substitute = self._fetch_fresh(alternative, context, attempt_pool)
            except PipelineCancelledError:
                raise
            except Exception as e:
                logger.warning(f"Alternative {alternative.source_type} for {source_type} also failed: {e}")
                return None
            return CollectedSource(
                source_type,
                alternative.source_type,
                substitute.data,
                CollectionOrigin.ALTERNATIVE_SOURCE,
            )

        if strategy is FallbackStrategy.USE_HISTORICAL_AVERAGE:
            if not config.historical_baseline:
                logger.warning(f"No historical average configured for {source_type}")
                return None
            data = copy.deepcopy(config.historical_baseline)
            data["isHistoricalAverage"] = True
            return CollectedSource(source_type, source_type, data, CollectionOrigin.HISTORICAL_AVERAGE)

        logger.info(f"Skipping data source {source_type}")
        return None

    def _attempt_pool_size(self, source_types: List[str]) -> int:
        if self.max_attempt_workers:
            return self.max_attempt_workers
        configs = [self.registry.get_config(t) for t in source_types]
        return max(1, sum(2 * c.max_attempts for c in configs))

    def _health_snapshot(self, source_types: List[str]) -> Dict[str, SourceHealth]:
        health = {}
        for source_type in source_types:
            adapter = self.registry.get_adapter(source_type)
            if adapter is not None and hasattr(adapter, "get_health"):
                health[source_type] = adapter.get_health()
        return health
