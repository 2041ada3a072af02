"""Network utilities for outbound HTTP, including proxy support.

Exports:
- ``ProxyKind``/``ProxyDescriptor``: one configured egress path.
- ``TransportFactory``/``Transport``: configured Requests sessions per path.
- ``ProxyPool``: read-only descriptor set with random/round-robin selection.
- ``RotatingTransport``: one logical client choosing a proxy per request.
"""

from finnet.network.proxy import ProxyCredentials, ProxyDescriptor, ProxyKind
from finnet.network.proxy_pool import ProxyPool, RotatingTransport
from finnet.network.transport import Transport, TransportFactory

__all__ = [
    "ProxyCredentials",
    "ProxyDescriptor",
    "ProxyKind",
    "ProxyPool",
    "RotatingTransport",
    "Transport",
    "TransportFactory",
]
