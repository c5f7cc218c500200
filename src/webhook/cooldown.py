"""Per-URL validation cooldown.

Throttles repeated validation of the same webhook URL so Discord is not
hammered by double submissions. Independent of the validation cache.
"""

from __future__ import annotations

import time


class ValidationCooldown:
    """Tracks the last validation attempt per URL.

    Default: one attempt per URL every 5 seconds.
    """

    def __init__(self, window_seconds: float = 5.0) -> None:
        self._window_seconds = window_seconds
        self._attempts: dict[str, float] = {}

    def check(self, url: str) -> bool:
        """Record an attempt for ``url``; return False if still cooling down.

        The attempt time is only refreshed when the attempt is allowed.
        """
        now = time.time()
        last = self._attempts.get(url)
        if last is not None and now - last < self._window_seconds:
            return False

        self._attempts[url] = now
        self._prune(now)
        return True

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_seconds
        stale = [u for u, t in self._attempts.items() if t <= cutoff]
        for u in stale:
            del self._attempts[u]
