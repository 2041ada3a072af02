"""Transport construction: one configured ``requests.Session`` per egress path.

``TransportFactory.build`` is a pure mapping ``ProxyDescriptor -> Transport``.
It performs no network I/O; the identity header is resolved lazily on the
first request so session establishment happens inside a caller's request.
"""

import logging
from typing import Any, Callable, Dict, Mapping, Optional

import requests
from requests.cookies import RequestsCookieJar

from finnet.exceptions import ConfigurationError
from finnet.network.proxy import ProxyDescriptor, ProxyKind
from finnet.session.state import SessionState

LOGGER = logging.getLogger(__name__)

HTML_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8"
API_ACCEPT = "text/html,application/xhtml+xml,application/xml,application/json;q=0.9,*/*;q=0.8"
ACCEPT_LANGUAGE = "en-US,en;q=0.9"
ACCEPT_ENCODING = "gzip, deflate"

IdentityProvider = Callable[[], str]


class Transport:
    """A ready-to-use HTTP transport bound to one proxy descriptor.

    Args:
        session: Configured Requests session (proxies, cookies, headers).
        descriptor: The egress path the session was built for.
        identity: Optional callable returning the ``User-Agent`` to send.
        state: The shared session state whose jar the session uses, if any.
    """

    def __init__(
        self,
        session: requests.Session,
        descriptor: ProxyDescriptor,
        *,
        identity: Optional[IdentityProvider] = None,
        state: Optional[SessionState] = None,
    ) -> None:
        self._session = session
        self.descriptor = descriptor
        self.state = state
        self._identity = identity

    @property
    def session(self) -> requests.Session:
        return self._session

    @property
    def proxies(self) -> Dict[str, str]:
        return dict(self._session.proxies)

    @property
    def cookies(self) -> RequestsCookieJar:
        return self._session.cookies

    def select(self) -> "Transport":
        """Return the concrete transport for the next request (always self)."""
        return self

    def request(
        self,
        method: str,
        url: str,
        *,
        timeout: Optional[float] = None,
        headers: Optional[Mapping[str, str]] = None,
        **kwargs: Any,
    ) -> requests.Response:
        merged: Dict[str, str] = {}
        if self._identity is not None:
            merged["User-Agent"] = self._identity()
        if headers:
            merged.update(headers)
        LOGGER.debug("%s %s via=%s", method.upper(), url, self.descriptor.masked())
        return self._session.request(method, url, headers=merged, timeout=timeout, **kwargs)

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "Transport":
        return self

    def __exit__(self, exc_type, exc, exc_tb) -> None:
        self.close()

    def __repr__(self) -> str:
        return f"Transport(proxy={self.descriptor.masked()})"


def _proxies_mapping(descriptor: ProxyDescriptor) -> Dict[str, str]:
    """Map a descriptor onto a Requests ``proxies`` dict.

    Exhaustive over ``ProxyKind``; anything else is a configuration error.
    """
    kind = descriptor.kind
    if kind is ProxyKind.NONE:
        return {}
    if kind in (ProxyKind.HTTP, ProxyKind.HTTPS, ProxyKind.SOCKS5):
        # socks5:// URLs need the requests[socks] extra (PySocks).
        url = descriptor.as_url()
        return {"http": url, "https": url}
    raise ConfigurationError("proxy.kind", kind, "unsupported proxy type")


class TransportFactory:
    """Builds transports that share the same default headers.

    Args:
        accept: ``Accept`` header sent by every transport.
        accept_language: ``Accept-Language`` header.
        identity: Default identity provider used when ``build`` gets none.
    """

    def __init__(
        self,
        *,
        accept: str = HTML_ACCEPT,
        accept_language: str = ACCEPT_LANGUAGE,
        identity: Optional[IdentityProvider] = None,
    ) -> None:
        self._accept = accept
        self._accept_language = accept_language
        self._identity = identity

    def build(
        self,
        descriptor: ProxyDescriptor,
        session: Optional[SessionState] = None,
        *,
        identity: Optional[IdentityProvider] = None,
    ) -> Transport:
        """Build a transport for ``descriptor``.

        Raises:
            ConfigurationError: for an unsupported ``descriptor.kind``. Nothing
                is constructed in that case.
        """
        # Resolve the proxy mapping first so an invalid kind fails before any
        # session object exists.
        proxies = _proxies_mapping(descriptor)

        http = requests.Session()
        # Ignore HTTP(S)_PROXY from the environment; routing comes from the descriptor only.
        http.trust_env = False
        http.proxies.update(proxies)
        http.headers.update(
            {
                "Accept": self._accept,
                "Accept-Language": self._accept_language,
                "Accept-Encoding": ACCEPT_ENCODING,
            }
        )
        if session is not None:
            http.cookies = session.cookie_jar

        return Transport(
            http,
            descriptor,
            identity=identity or self._identity,
            state=session,
        )

    def build_direct(
        self,
        session: Optional[SessionState] = None,
        *,
        identity: Optional[IdentityProvider] = None,
    ) -> Transport:
        return self.build(ProxyDescriptor.direct(), session, identity=identity)


__all__ = [
    "ACCEPT_ENCODING",
    "ACCEPT_LANGUAGE",
    "API_ACCEPT",
    "HTML_ACCEPT",
    "IdentityProvider",
    "Transport",
    "TransportFactory",
]
