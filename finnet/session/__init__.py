"""Session affinity: shared cookie jars and cached identities per purpose."""

from finnet.session.manager import BootstrapHook, SessionManager
from finnet.session.state import SessionState

__all__ = ["BootstrapHook", "SessionManager", "SessionState"]
