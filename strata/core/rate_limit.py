import logging
import threading
import time
from typing import Any, Callable, Dict, MutableMapping, Optional

from ..config import settings

logger = logging.getLogger(__name__)

KEY_PREFIX = "login_attempts_"


class LoginRateLimiter:
    """Throttle failed logins per client identifier.

    Attempt counters are ``{"count", "first_attempt"}`` dicts. With the
    ``session`` backend they live inside the caller's session record, so they
    only last as long as that session does: a client that drops its session
    cookie starts from zero. The ``memory`` backend keeps them in a
    process-wide map instead, independent of any session.
    """

    def __init__(
        self,
        max_attempts: int = 5,
        window_seconds: int = 900,
        backend: str = "session",
        clock: Callable[[], float] = time.time,
    ) -> None:
        if backend not in ("session", "memory"):
            raise ValueError(f"Unknown rate limit backend: {backend}")
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.backend = backend
        self.clock = clock
        self._shared: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    def _bucket(self, session: MutableMapping[str, Any]) -> MutableMapping[str, Any]:
        return session if self.backend == "session" else self._shared

    def _purge_expired(self, window: int, now: float) -> None:
        if self.backend != "memory":
            return
        stale = [key for key, entry in self._shared.items() if now - entry["first_attempt"] > window]
        for key in stale:
            del self._shared[key]

    def check_rate_limit(
        self,
        session: MutableMapping[str, Any],
        identifier: str,
        max_attempts: Optional[int] = None,
        window_seconds: Optional[int] = None,
    ) -> bool:
        limit = self.max_attempts if max_attempts is None else max_attempts
        window = self.window_seconds if window_seconds is None else window_seconds
        key = KEY_PREFIX + identifier
        now = self.clock()
        with self._lock:
            self._purge_expired(window, now)
            bucket = self._bucket(session)
            attempts = bucket.get(key)
            if attempts is None:
                attempts = {"count": 0, "first_attempt": now}
                bucket[key] = attempts
            if now - attempts["first_attempt"] > window:
                bucket[key] = {"count": 0, "first_attempt": now}
                return True
            allowed = attempts["count"] < limit
        if not allowed:
            logger.warning("Login rate limit reached for %s", identifier)
        return allowed

    def record_failed_login(self, session: MutableMapping[str, Any], identifier: str) -> int:
        key = KEY_PREFIX + identifier
        with self._lock:
            bucket = self._bucket(session)
            attempts = bucket.get(key)
            if attempts is None:
                attempts = {"count": 0, "first_attempt": self.clock()}
            attempts = {"count": attempts["count"] + 1, "first_attempt": attempts["first_attempt"]}
            bucket[key] = attempts
        return attempts["count"]

    def reset_login_attempts(self, session: MutableMapping[str, Any], identifier: str) -> None:
        with self._lock:
            self._bucket(session).pop(KEY_PREFIX + identifier, None)

    def attempts(self, session: MutableMapping[str, Any], identifier: str) -> int:
        entry = self._bucket(session).get(KEY_PREFIX + identifier)
        return entry["count"] if entry else 0

    def retry_after(self, session: MutableMapping[str, Any], identifier: str) -> int:
        entry = self._bucket(session).get(KEY_PREFIX + identifier)
        if not entry:
            return 0
        remaining = self.window_seconds - (self.clock() - entry["first_attempt"])
        return max(0, int(remaining))


login_limiter = LoginRateLimiter(
    max_attempts=settings.login_max_attempts,
    window_seconds=settings.login_window_seconds,
    backend=settings.login_rate_limit_backend,
)
