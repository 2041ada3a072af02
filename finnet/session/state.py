"""Per-purpose session state shared by every transport of that purpose."""

import threading
from typing import Optional

from requests.cookies import RequestsCookieJar


class SessionState:
    """Shared cookie jar plus a cached identity string.

    Lifecycle: created empty the first time a purpose is requested, identity
    set once by ``SessionManager`` and kept for the process lifetime. The jar
    only grows (subject to normal cookie expiry); it is never cleared here.

    ``RequestsCookieJar`` serialises its own reads and writes, and Requests
    extracts all cookies of a response in one call, so concurrent requests
    need no external locking.
    """

    def __init__(self, purpose: str) -> None:
        self.purpose = purpose
        self.cookie_jar = RequestsCookieJar()
        self._identity: Optional[str] = None
        self._lock = threading.Lock()

    @property
    def identity(self) -> Optional[str]:
        return self._identity

    def set_identity(self, identity: str) -> None:
        with self._lock:
            self._identity = identity

    def cookie_count(self) -> int:
        return len(self.cookie_jar)

    def __repr__(self) -> str:
        return (
            f"SessionState(purpose={self.purpose!r}, "
            f"established={self._identity is not None}, cookies={len(self.cookie_jar)})"
        )


__all__ = ["SessionState"]
