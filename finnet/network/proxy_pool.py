"""Proxy pool and per-request transport selection.

Two ways to spread traffic over the configured proxies:

1) Deterministic per index: ``ProxyPool.named_transports`` builds one
   transport per descriptor, named ``<purpose>_0``, ``<purpose>_1``, ...
   Callers decide which name to use.
2) Per call: ``RotatingTransport`` picks a descriptor for every request
   (uniform random or round-robin) and builds the matching transport on first
   use, reusing it afterwards.

An empty pool always means a direct connection. A ``NONE`` descriptor is
normalised to the direct descriptor, so a pool holding a single ``NONE``
entry behaves exactly like the empty pool.
"""

import logging
import random
import threading
from typing import Any, Dict, Iterable, Optional, Tuple

import requests

from finnet.exceptions import ConfigurationError
from finnet.network.proxy import ProxyDescriptor, ProxyKind
from finnet.network.transport import IdentityProvider, Transport, TransportFactory
from finnet.session.state import SessionState

LOGGER = logging.getLogger(__name__)

STRATEGIES = ("random", "round_robin")


def _normalise(descriptor: ProxyDescriptor) -> ProxyDescriptor:
    if descriptor.kind is ProxyKind.NONE:
        return ProxyDescriptor.direct()
    return descriptor


class ProxyPool:
    """An ordered, read-only set of proxy descriptors for one purpose.

    Args:
        descriptors: Configured egress paths (possibly empty).
        strategy: ``"random"`` (uniform choice per call) or ``"round_robin"``.
        rng: Source of randomness for the random strategy; defaults to a
            fresh ``random.Random``. Pass a seeded instance in tests.
    """

    def __init__(
        self,
        descriptors: Iterable[ProxyDescriptor] = (),
        *,
        strategy: str = "random",
        rng: Optional[random.Random] = None,
    ) -> None:
        if strategy not in STRATEGIES:
            raise ConfigurationError("proxy.strategy", strategy, f"expected one of {STRATEGIES}")
        self._descriptors: Tuple[ProxyDescriptor, ...] = tuple(descriptors)
        self._strategy = strategy
        self._rng = rng or random.Random()
        self._idx = 0
        self._lock = threading.Lock()

    @property
    def descriptors(self) -> Tuple[ProxyDescriptor, ...]:
        return self._descriptors

    @property
    def strategy(self) -> str:
        return self._strategy

    def __len__(self) -> int:
        return len(self._descriptors)

    def is_empty(self) -> bool:
        """Return True if no proxies are configured."""
        return not self._descriptors

    def choose_descriptor(self) -> ProxyDescriptor:
        """Pick a descriptor uniformly at random; direct when the pool is empty."""
        if not self._descriptors:
            return ProxyDescriptor.direct()
        with self._lock:
            choice = self._rng.choice(self._descriptors)
        return _normalise(choice)

    def next_descriptor(self) -> ProxyDescriptor:
        """Return descriptors in order, wrapping around; direct when empty."""
        if not self._descriptors:
            return ProxyDescriptor.direct()
        with self._lock:
            choice = self._descriptors[self._idx % len(self._descriptors)]
            self._idx += 1
        return _normalise(choice)

    def select_descriptor(self) -> ProxyDescriptor:
        if self._strategy == "random":
            return self.choose_descriptor()
        return self.next_descriptor()

    def named_transports(
        self,
        purpose: str,
        factory: TransportFactory,
        session: Optional[SessionState] = None,
        *,
        identity: Optional[IdentityProvider] = None,
    ) -> Dict[str, Transport]:
        """Build one transport per descriptor, keyed ``<purpose>_<index>``.

        Every descriptor is built up front so a bad entry fails at startup.
        """
        transports: Dict[str, Transport] = {}
        for idx, descriptor in enumerate(self._descriptors):
            name = f"{purpose}_{idx}"
            transports[name] = factory.build(_normalise(descriptor), session, identity=identity)
            LOGGER.debug("Built transport %s via=%s", name, descriptor.masked())
        return transports


class RotatingTransport:
    """One logical client covering every descriptor of a pool.

    Each request selects a descriptor from the pool and goes out through the
    transport built for it. Transports are built lazily and cached per
    descriptor; all of them share ``session``'s cookie jar.
    """

    def __init__(
        self,
        pool: ProxyPool,
        factory: TransportFactory,
        session: Optional[SessionState] = None,
        *,
        identity: Optional[IdentityProvider] = None,
    ) -> None:
        self._pool = pool
        self._factory = factory
        self.state = session
        self._identity = identity
        self._transports: Dict[ProxyDescriptor, Transport] = {}
        self._lock = threading.Lock()

    @property
    def pool(self) -> ProxyPool:
        return self._pool

    def validate(self) -> None:
        """Build every pooled transport now so configuration errors surface early."""
        for descriptor in self._pool.descriptors or (ProxyDescriptor.direct(),):
            self.transport_for(descriptor)

    def transport_for(self, descriptor: ProxyDescriptor) -> Transport:
        key = _normalise(descriptor)
        with self._lock:
            transport = self._transports.get(key)
            if transport is None:
                transport = self._factory.build(key, self.state, identity=self._identity)
                self._transports[key] = transport
            return transport

    def select(self) -> Transport:
        """Return the transport chosen for a single request."""
        return self.transport_for(self._pool.select_descriptor())

    def request(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        return self.select().request(method, url, **kwargs)

    def get(self, url: str, **kwargs: Any) -> requests.Response:
        return self.request("GET", url, **kwargs)

    def close(self) -> None:
        with self._lock:
            transports = list(self._transports.values())
            self._transports.clear()
        for transport in transports:
            transport.close()

    def __repr__(self) -> str:
        return f"RotatingTransport(proxies={len(self._pool)}, strategy={self._pool.strategy})"


__all__ = ["ProxyPool", "RotatingTransport", "STRATEGIES"]
