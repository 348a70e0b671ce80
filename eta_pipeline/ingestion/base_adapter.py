"""
Base adapter interface for all source adapters.

Defines the uniform fetch capability every provider implements and the
shared models passed across it. The pipeline knows nothing about transport
or authentication; it only calls ``fetch(context)``.
"""
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ..errors import PipelineCancelledError


@dataclass
class FetchContext:
    """
    Everything an adapter is told about the invocation it serves.

    The cancel event is shared by all fetches of one invocation; adapters
    doing long or repeated I/O should call ``raise_if_cancelled()``.
    """
    driver_id: str
    load_id: str
    cancel_event: threading.Event = field(default_factory=threading.Event)
    attributes: Dict[str, Any] = field(default_factory=dict)

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def raise_if_cancelled(self) -> None:
        if self.cancel_event.is_set():
            raise PipelineCancelledError(
                f"Invocation for driver {self.driver_id} / load {self.load_id} was cancelled"
            )


@dataclass
class SourceHealth:
    """Health status of a source adapter."""
    source_id: str
    is_healthy: bool
    last_fetch: Optional[datetime]
    fetch_count: int
    error_message: Optional[str] = None


class SourceAdapter(ABC):
    """
    Abstract base class for source adapters.

    Subclasses implement ``_fetch``; ``fetch`` wraps it with the shared
    health bookkeeping. Errors propagate to the collector, which owns the
    retry and fallback policy.
    """

    def __init__(self, source_id: str, config: Optional[Dict[str, Any]] = None):
        self.source_id = source_id
        self.config = config or {}
        self._last_fetch: Optional[datetime] = None
        self._last_error: Optional[str] = None
        self._fetch_count: int = 0
        self._lock = threading.Lock()

    def fetch(self, context: FetchContext) -> Dict[str, Any]:
        """
        Fetch the raw payload for one driver/load pair.

        Args:
            context: Invocation context

        Returns:
            Raw provider payload
        """
        context.raise_if_cancelled()
        try:
            payload = self._fetch(context)
        except Exception as e:
            self._record(error=f"{type(e).__name__}: {e}")
            raise
        self._record(error=None)
        return payload

    @abstractmethod
    def _fetch(self, context: FetchContext) -> Dict[str, Any]:
        """Provider-specific fetch."""
        pass

    def get_health(self) -> SourceHealth:
        """Return health status of this adapter."""
        with self._lock:
            return SourceHealth(
                source_id=self.source_id,
                is_healthy=self._last_error is None,
                last_fetch=self._last_fetch,
                fetch_count=self._fetch_count,
                error_message=self._last_error,
            )

    def _record(self, error: Optional[str]) -> None:
        with self._lock:
            self._last_fetch = datetime.now(timezone.utc)
            self._fetch_count += 1
            self._last_error = error
