"""Home/away flag shared between the presence handler and the poll loop."""

from __future__ import annotations

import threading


class PresenceState:
    """Lock-guarded ``home`` flag.

    :meth:`set` reports whether the value changed so callers can treat
    repeated ``home`` or ``not_home`` events as no-ops.
    """

    def __init__(self, home: bool = False) -> None:
        self._lock = threading.Lock()
        self._home = home

    def get(self) -> bool:
        with self._lock:
            return self._home

    def set(self, home: bool) -> bool:
        with self._lock:
            if self._home == home:
                return False
            self._home = home
            return True
