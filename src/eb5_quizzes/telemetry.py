"""Analytics side-channel injected into the aggregator."""
import logging
from typing import Any, Optional

logger = logging.getLogger(__name__)


class Telemetry:
    """Receives named UI events; this implementation writes them to the debug log."""

    def log_event(self, name: str, params: Optional[dict[str, Any]] = None) -> None:
        logger.debug("event %s %s", name, params or {})
