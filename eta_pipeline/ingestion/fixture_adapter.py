"""
Adapters that serve data without a network: recorded fixtures and plain
callables.
"""
import copy
import json
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from .base_adapter import FetchContext, SourceAdapter

logger = logging.getLogger(__name__)

MOCK_RESPONSES_DIR = Path(__file__).parent / "mock_responses"


class FixtureAdapter(SourceAdapter):
    """
    Serves a recorded provider response from a JSON file.

    Config keys:
        mock_file: Path to the JSON fixture. Defaults to
            ``mock_responses/<source_id>.json`` next to this module.
    """

    def __init__(self, source_id: str, config: Optional[Dict[str, Any]] = None):
        super().__init__(source_id, config)
        mock_file = self.config.get("mock_file")
        self.mock_file = Path(mock_file) if mock_file else MOCK_RESPONSES_DIR / f"{source_id}.json"
        self._payload: Optional[Dict[str, Any]] = None

    def _fetch(self, context: FetchContext) -> Dict[str, Any]:
        if self._payload is None:
            if not self.mock_file.exists():
                raise FileNotFoundError(f"Mock file not found: {self.mock_file}")
            with open(self.mock_file) as f:
                self._payload = json.load(f)
            logger.debug(f"Loaded fixture for {self.source_id} from {self.mock_file}")

        payload = copy.deepcopy(self._payload)
        payload.setdefault("driverId", context.driver_id)
        return payload


class CallableAdapter(SourceAdapter):
    """Wraps a ``fn(context) -> dict`` so any function can serve as a source."""

    def __init__(self, source_id: str, fn: Callable[[FetchContext], Dict[str, Any]]):
        super().__init__(source_id)
        self._fn = fn

    def _fetch(self, context: FetchContext) -> Dict[str, Any]:
        return self._fn(context)
