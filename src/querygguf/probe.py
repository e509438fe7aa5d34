"""Host CPU probing for llama-cli's ``--threads``."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable

logger = logging.getLogger(__name__)


def host_threads(cpu_count: Callable[[], int | None] = os.cpu_count) -> int:
    """Logical CPUs minus one, never below 1. Unknown counts give 1."""
    count = cpu_count()
    if not count:
        logger.warning("Could not detect CPU count, using 1 thread")
        return 1
    return max(count - 1, 1)


def probe_threads(
    override: int | None = None,
    cpu_count: Callable[[], int | None] = os.cpu_count,
) -> int:
    """Thread count to pass to llama-cli.

    An explicit override is used as configured, even above the host's
    logical CPU count; that case is only logged.
    """
    if override is None:
        threads = host_threads(cpu_count)
        logger.debug("Using %d probed thread(s)", threads)
        return threads

    count = cpu_count()
    if count and override > count:
        logger.warning(
            "Thread override %d exceeds the %d logical CPUs on this host", override, count
        )
    return override
