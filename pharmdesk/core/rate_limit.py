import math
import time
from collections import deque
from threading import Lock


class LoginRateLimiter:
    """
    Locks out a login key after too many failed attempts inside a rolling window.

    Keys combine the normalised email with the client address, so one terminal
    guessing a colleague's password does not lock out the whole pharmacy.
    State is per process; every worker keeps its own counters.
    """

    def __init__(self, *, max_attempts: int, window_seconds: int, lock_seconds: int):
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds
        self.lock_seconds = lock_seconds
        self._failures: dict[str, deque[float]] = {}
        self._locked_until: dict[str, float] = {}
        self._lock = Lock()

    @staticmethod
    def key_for(email: str, client_ip: str) -> str:
        return f"{email.strip().lower()}:{client_ip}"

    def check(self, key: str) -> int:
        """Seconds the caller must wait before trying again, 0 when allowed."""
        now = time.monotonic()
        with self._lock:
            locked_until = self._locked_until.get(key, 0.0)
            if locked_until > now:
                return max(1, math.ceil(locked_until - now))
            self._locked_until.pop(key, None)
            return 0

    def register_failure(self, key: str) -> None:
        now = time.monotonic()
        with self._lock:
            failures = self._failures.setdefault(key, deque())
            while failures and failures[0] < now - self.window_seconds:
                failures.popleft()
            failures.append(now)
            if len(failures) >= self.max_attempts:
                self._locked_until[key] = now + self.lock_seconds
                failures.clear()

    def register_success(self, key: str) -> None:
        with self._lock:
            self._failures.pop(key, None)
            self._locked_until.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._failures.clear()
            self._locked_until.clear()
