"""Outbound HTTP client provisioning for financial data sources.

Typical use:

    from finnet import build_registry, load_config

    registry = build_registry(load_config())
    transport, policy = registry.resolve("yahoo")
    response = registry.resolve("yahoo").get("https://finance.yahoo.com/")
"""

from finnet.config import FinnetConfig, load_config
from finnet.exceptions import (
    ConfigurationError,
    ExhaustedRetriesError,
    FatalRequestError,
    FinnetError,
    RequestCancelledError,
    SessionEstablishmentError,
    TransientNetworkError,
    UnknownPurposeError,
)
from finnet.network import ProxyDescriptor, ProxyKind, ProxyPool, TransportFactory
from finnet.registry import ClientEntry, ClientRegistry, build_registry
from finnet.retry import RetryPolicy, RetrySettings
from finnet.session import SessionManager, SessionState

__all__ = [
    "ClientEntry",
    "ClientRegistry",
    "ConfigurationError",
    "ExhaustedRetriesError",
    "FatalRequestError",
    "FinnetConfig",
    "FinnetError",
    "ProxyDescriptor",
    "ProxyKind",
    "ProxyPool",
    "RequestCancelledError",
    "RetryPolicy",
    "RetrySettings",
    "SessionEstablishmentError",
    "SessionManager",
    "SessionState",
    "TransientNetworkError",
    "TransportFactory",
    "UnknownPurposeError",
    "build_registry",
    "load_config",
]
