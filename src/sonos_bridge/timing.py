from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator

logger = logging.getLogger(__name__)


@asynccontextmanager
async def timed(memo: str) -> AsyncIterator[None]:
    """Log how long the wrapped block took, whether or not it raised."""
    start = time.perf_counter()
    try:
        yield
    finally:
        duration_ms = (time.perf_counter() - start) * 1000
        logger.debug("Timing: %s took %.1fms", memo, duration_ms)
