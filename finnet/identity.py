"""Browser identity (user-agent) generation for outbound requests."""

import logging
from typing import Callable, Optional

from fake_useragent import UserAgent

LOGGER = logging.getLogger(__name__)

FALLBACK_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/124.0.0.0 Safari/537.36"
)

IdentityGenerator = Callable[[], str]

_user_agent: Optional[UserAgent] = None


def _get_user_agent() -> UserAgent:
    global _user_agent
    if _user_agent is None:
        _user_agent = UserAgent(fallback=FALLBACK_USER_AGENT)
    return _user_agent


def random_user_agent() -> str:
    """Return a plausible desktop browser user-agent string."""
    try:
        value = _get_user_agent().random
    except Exception as exc:  # noqa: BLE001 - the data file is optional at runtime
        LOGGER.warning("fake-useragent unavailable, using fallback identity: %s", exc)
        return FALLBACK_USER_AGENT
    return value or FALLBACK_USER_AGENT


__all__ = ["FALLBACK_USER_AGENT", "IdentityGenerator", "random_user_agent"]
