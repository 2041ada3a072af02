"""Client registry: purpose name -> ready-to-use (transport, retry policy).

``build_registry`` wires everything from a ``FinnetConfig`` once at startup:

- ``yahoo`` (quote provider) is session-affine. All of its transports share
  one ``SessionState`` (cookie jar + identity). With proxies configured it
  gets ``yahoo_0..yahoo_{n-1}`` (one transport per proxy) plus ``yahoo``, a
  rotating transport picking a proxy per request. Without proxies ``yahoo``
  is a direct transport.
- ``xetra``, ``alphavantage`` and ``datahubio`` use direct transports, each
  with its own random identity and no shared session.

Every purpose gets its own ``RetryPolicy`` built from the same settings.
"""

import logging
import random
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Union

import requests

from finnet.config import FinnetConfig
from finnet.exceptions import FinnetError, TransientNetworkError, UnknownPurposeError
from finnet.identity import IdentityGenerator, random_user_agent
from finnet.logging_utils import perf
from finnet.network.proxy_pool import ProxyPool, RotatingTransport
from finnet.network.transport import API_ACCEPT, HTML_ACCEPT, Transport, TransportFactory
from finnet.retry import RetryPolicy, RetrySettings
from finnet.session import BootstrapHook, SessionManager

LOGGER = logging.getLogger(__name__)

YAHOO = "yahoo"
XETRA = "xetra"
ALPHA_VANTAGE = "alphavantage"
DATAHUB_IO = "datahubio"

DIRECT_PURPOSES = (XETRA, ALPHA_VANTAGE, DATAHUB_IO)

_BODY_CHUNK_SIZE = 64 * 1024

AnyTransport = Union[Transport, RotatingTransport]


def _read_body(
    response: requests.Response,
    limit: float,
    timeout: float,
    clock: Callable[[], float],
) -> None:
    """Buffer the body, giving up once ``clock()`` passes ``limit``."""
    chunks: List[bytes] = []
    for chunk in response.iter_content(chunk_size=_BODY_CHUNK_SIZE):
        chunks.append(chunk)
        if clock() > limit:
            response.close()
            raise TransientNetworkError(
                f"attempt exceeded {timeout:.1f}s while reading the body",
                status_code=response.status_code,
            )
    # Same buffering Response.content performs, done chunk by chunk.
    response._content = b"".join(chunks)
    response._content_consumed = True


@dataclass(frozen=True)
class ClientEntry:
    """A registered client. Unpacks as ``transport, retry_policy``."""

    purpose: str
    transport: AnyTransport
    retry_policy: RetryPolicy

    def __iter__(self) -> Iterator[Any]:
        return iter((self.transport, self.retry_policy))

    def send(
        self,
        method: str,
        url: str,
        *,
        cancel_event: Optional[threading.Event] = None,
        deadline: Optional[float] = None,
        **kwargs: Any,
    ) -> requests.Response:
        """Issue one request through the transport under the retry policy.

        Unless the caller asks for ``stream=True``, the body is read inside
        the attempt, and an attempt whose total time passes the per-attempt
        timeout fails as transient.

        Errors carry ``purpose`` and the (masked) proxy of the last attempt.
        """
        last_proxy: Dict[str, str] = {}
        caller_streams = bool(kwargs.pop("stream", False))
        clock = self.retry_policy.clock

        def attempt(timeout: float) -> requests.Response:
            transport = self.transport.select()
            last_proxy["proxy"] = transport.descriptor.masked()
            limit = clock() + timeout
            response = transport.request(method, url, timeout=timeout, stream=True, **kwargs)
            if not caller_streams:
                _read_body(response, limit, timeout, clock)
            return response

        try:
            return self.retry_policy.execute(
                attempt,
                context={"purpose": self.purpose},
                cancel_event=cancel_event,
                deadline=deadline,
            )
        except FinnetError as exc:
            exc.add_context(proxy=last_proxy.get("proxy", "none"))
            raise

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.send("GET", url, **kwargs)


class ClientRegistry:
    """Read-only mapping of client names to ``ClientEntry`` values."""

    def __init__(
        self,
        entries: Mapping[str, ClientEntry],
        session_manager: Optional[SessionManager] = None,
    ) -> None:
        self._entries = MappingProxyType(dict(entries))
        self.session_manager = session_manager

    def resolve(self, name: str) -> ClientEntry:
        """Return the entry registered under ``name``.

        Raises:
            UnknownPurposeError: if nothing is registered under ``name``.
        """
        try:
            return self._entries[name]
        except KeyError:
            raise UnknownPurposeError(name, sorted(self._entries)) from None

    def names(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def close(self) -> None:
        for entry in self._entries.values():
            entry.transport.close()


def build_retry_policy(
    config: FinnetConfig,
    name: str,
    *,
    sleep: Callable[[float], None] = time.sleep,
) -> RetryPolicy:
    settings = RetrySettings(
        max_attempts=config.retry_count,
        per_attempt_timeout=float(config.timeout_seconds),
        backoff_seconds=config.retry_backoff_seconds,
        max_backoff_seconds=max(30.0, config.retry_backoff_seconds),
    )
    return RetryPolicy(settings, name=name, sleep=sleep)


def _fixed_identity(value: str) -> Callable[[], str]:
    def provide() -> str:
        return value

    return provide


@perf("registry.build", tags={"component": "registry"})
def build_registry(
    config: FinnetConfig,
    *,
    session_manager: Optional[SessionManager] = None,
    identity_generator: Optional[IdentityGenerator] = None,
    bootstraps: Optional[Mapping[str, BootstrapHook]] = None,
    rng: Optional[random.Random] = None,
    sleep: Callable[[float], None] = time.sleep,
) -> ClientRegistry:
    """Build every client from ``config``.

    Args:
        config: Retry/timeout settings, the proxy list and the Alpha Vantage key.
        session_manager: Existing manager to reuse; a new one is created
            from ``identity_generator`` and ``bootstraps`` otherwise.
        identity_generator: Returns a browser user-agent string.
        bootstraps: Per-purpose hooks run once when a session is established.
        rng: Random source for per-request proxy selection.
        sleep: Sleep used by retry backoff.

    Raises:
        ConfigurationError: if any configured proxy cannot be turned into a
            transport. Raised here so a bad configuration stops startup.
    """
    generate = identity_generator or random_user_agent
    manager = session_manager or SessionManager(generate, bootstraps)
    entries: Dict[str, ClientEntry] = {}

    # Session-affine quote provider.
    yahoo_policy = build_retry_policy(config, YAHOO, sleep=sleep)
    yahoo_state = manager.get_session_state(YAHOO)
    yahoo_identity = manager.identity_provider(YAHOO)
    html_factory = TransportFactory(accept=HTML_ACCEPT)
    pool = ProxyPool(config.proxies, strategy="random", rng=rng)

    if not pool.is_empty():
        named = pool.named_transports(YAHOO, html_factory, yahoo_state, identity=yahoo_identity)
        for name, transport in named.items():
            entries[name] = ClientEntry(name, transport, yahoo_policy)
        rotating = RotatingTransport(pool, html_factory, yahoo_state, identity=yahoo_identity)
        rotating.validate()
        entries[YAHOO] = ClientEntry(YAHOO, rotating, yahoo_policy)
    else:
        direct = html_factory.build_direct(yahoo_state, identity=yahoo_identity)
        entries[YAHOO] = ClientEntry(YAHOO, direct, yahoo_policy)

    api_factory = TransportFactory(accept=API_ACCEPT)
    for purpose in DIRECT_PURPOSES:
        transport = api_factory.build_direct(identity=_fixed_identity(generate()))
        if purpose == ALPHA_VANTAGE and config.alpha_vantage_api_key:
            # Merged into every query string; an explicit apikey param wins.
            transport.session.params["apikey"] = config.alpha_vantage_api_key
        entries[purpose] = ClientEntry(
            purpose, transport, build_retry_policy(config, purpose, sleep=sleep)
        )

    LOGGER.info(
        "Registered %d clients (%d proxies): %s",
        len(entries),
        len(pool),
        ", ".join(entries),
    )
    return ClientRegistry(entries, manager)


__all__ = [
    "ALPHA_VANTAGE",
    "DATAHUB_IO",
    "XETRA",
    "YAHOO",
    "ClientEntry",
    "ClientRegistry",
    "build_registry",
    "build_retry_policy",
]
