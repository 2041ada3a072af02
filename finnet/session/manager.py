"""Session lifecycle: one ``SessionState`` per purpose, identity set at most once.

Establishment is single-flight per purpose: the first caller generates the
identity (and runs the optional bootstrap hook) while holding that purpose's
lock; concurrent callers block on the lock and then read the cached value.
A failed establishment caches nothing, so the next caller simply tries again.

While the bootstrap hook runs, ``get_identity`` on the establishing thread
returns the pending identity instead of waiting on the lock it already holds,
so the hook may request through the purpose's own transports.
"""

import logging
import threading
from typing import Callable, Dict, Mapping, Optional

from finnet.exceptions import SessionEstablishmentError
from finnet.identity import IdentityGenerator, random_user_agent
from finnet.logging_utils import perf_span
from finnet.session.state import SessionState

LOGGER = logging.getLogger(__name__)

# Called with the fresh state and the generated identity, e.g. to issue a
# request that seeds the cookie jar. Raising aborts establishment.
BootstrapHook = Callable[[SessionState, str], None]


class SessionManager:
    """Owns the ``SessionState`` of every session-affine purpose."""

    def __init__(
        self,
        identity_generator: Optional[IdentityGenerator] = None,
        bootstraps: Optional[Mapping[str, BootstrapHook]] = None,
    ) -> None:
        self._identity_generator = identity_generator or random_user_agent
        self._bootstraps: Dict[str, BootstrapHook] = dict(bootstraps or {})
        self._states: Dict[str, SessionState] = {}
        self._establish_locks: Dict[str, threading.Lock] = {}
        self._registry_lock = threading.Lock()
        self._local = threading.local()

    def get_session_state(self, purpose: str) -> SessionState:
        """Return the process-wide state for ``purpose``, creating it once."""
        with self._registry_lock:
            state = self._states.get(purpose)
            if state is None:
                state = SessionState(purpose)
                self._states[purpose] = state
                self._establish_locks[purpose] = threading.Lock()
                LOGGER.debug("Created session state for %s", purpose)
            return state

    def is_established(self, purpose: str) -> bool:
        with self._registry_lock:
            state = self._states.get(purpose)
        return state is not None and state.identity is not None

    def _pending(self) -> Dict[str, Optional[str]]:
        pending = getattr(self._local, "pending", None)
        if pending is None:
            pending = self._local.pending = {}
        return pending

    def get_identity(self, purpose: str) -> str:
        """Return the cached identity for ``purpose``, establishing it if needed.

        Raises:
            SessionEstablishmentError: if generating the identity or running
                the bootstrap hook fails, or if the identity generator itself
                asks for the identity it is producing. Nothing is cached in
                that case.
        """
        state = self.get_session_state(purpose)
        identity = state.identity
        if identity is not None:
            return identity

        pending = self._pending()
        if purpose in pending:
            identity = pending[purpose]
            if identity is None:
                raise SessionEstablishmentError(
                    purpose, "identity requested while it is being generated"
                )
            return identity

        with self._registry_lock:
            lock = self._establish_locks[purpose]
        with lock:
            # Another caller may have finished while we waited.
            if state.identity is not None:
                return state.identity
            pending[purpose] = None
            try:
                identity = self._establish(state, pending)
            finally:
                pending.pop(purpose, None)
            state.set_identity(identity)
            return identity

    def _establish(self, state: SessionState, pending: Dict[str, Optional[str]]) -> str:
        purpose = state.purpose
        with perf_span("session.establish", tags={"purpose": purpose}, logger=LOGGER):
            try:
                identity = self._identity_generator()
            except SessionEstablishmentError:
                raise
            except Exception as exc:  # noqa: BLE001 - surfaced as SessionEstablishmentError
                LOGGER.warning("Identity generation failed for %s: %s", purpose, exc)
                raise SessionEstablishmentError(purpose, f"identity generation failed: {exc}") from exc
            if not identity:
                raise SessionEstablishmentError(purpose, "identity generator returned an empty value")

            bootstrap = self._bootstraps.get(purpose)
            if bootstrap is not None:
                pending[purpose] = identity
                try:
                    bootstrap(state, identity)
                except SessionEstablishmentError:
                    raise
                except Exception as exc:  # noqa: BLE001 - surfaced as SessionEstablishmentError
                    LOGGER.warning("Session bootstrap failed for %s: %s", purpose, exc)
                    raise SessionEstablishmentError(purpose, f"bootstrap failed: {exc}") from exc

        LOGGER.info(
            "Session established for %s (cookies=%d)", purpose, state.cookie_count()
        )
        return identity

    def identity_provider(self, purpose: str) -> Callable[[], str]:
        """Return a zero-arg callable resolving the identity for ``purpose`` lazily."""

        def provide() -> str:
            return self.get_identity(purpose)

        return provide


__all__ = ["BootstrapHook", "SessionManager"]
