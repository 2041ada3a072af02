"""Proxy descriptors: one immutable value per configured egress path."""

import enum
from dataclasses import dataclass
from typing import Optional
from urllib.parse import quote, unquote, urlsplit

from finnet.exceptions import ConfigurationError


class ProxyKind(enum.Enum):
    NONE = "none"
    HTTP = "http"
    HTTPS = "https"
    SOCKS5 = "socks5"


_SCHEME_TO_KIND = {
    "http": ProxyKind.HTTP,
    "https": ProxyKind.HTTPS,
    "socks5": ProxyKind.SOCKS5,
    "socks5h": ProxyKind.SOCKS5,
    "socks": ProxyKind.SOCKS5,
}


@dataclass(frozen=True)
class ProxyCredentials:
    username: str
    password: str

    def __repr__(self) -> str:
        return f"ProxyCredentials(username={self.username!r}, password='***')"


@dataclass(frozen=True)
class ProxyDescriptor:
    """Describes one egress path.

    Args:
        kind: Proxy protocol, or ``ProxyKind.NONE`` for a direct connection.
        address: Proxy host or IP. Ignored for ``NONE``.
        port: Proxy TCP port. Ignored for ``NONE``.
        credentials: Optional basic-auth credentials for the proxy.

    Raises:
        ConfigurationError: if a proxied kind lacks an address or has a port
            outside ``1..65535``.
    """

    kind: ProxyKind = ProxyKind.NONE
    address: str = ""
    port: int = 0
    credentials: Optional[ProxyCredentials] = None

    def __post_init__(self) -> None:
        if not isinstance(self.kind, ProxyKind):
            # Unknown kinds are rejected by the transport factory, not here.
            return
        if self.kind is ProxyKind.NONE:
            return
        if not self.address or not self.address.strip():
            raise ConfigurationError("proxy.address", self.address, "address must be non-empty")
        if isinstance(self.port, bool) or not isinstance(self.port, int):
            raise ConfigurationError("proxy.port", self.port, "port must be an integer")
        if not 1 <= self.port <= 65535:
            raise ConfigurationError("proxy.port", self.port, "port must be in 1..65535")

    @classmethod
    def direct(cls) -> "ProxyDescriptor":
        """Return the canonical no-proxy descriptor."""
        return cls()

    @classmethod
    def create(
        cls,
        kind: ProxyKind,
        address: str,
        port: int,
        *,
        use_credentials: bool = False,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ) -> "ProxyDescriptor":
        """Build a descriptor, attaching credentials only when opted in."""
        credentials = None
        if use_credentials:
            if not username:
                raise ConfigurationError(
                    "proxy.username", username, "use_credentials requires a username"
                )
            credentials = ProxyCredentials(username=username, password=password or "")
        return cls(kind=kind, address=address, port=port, credentials=credentials)

    @classmethod
    def parse(cls, text: str) -> "ProxyDescriptor":
        """Parse ``scheme://[user:pass@]host:port`` or bare ``host:port``.

        Bare values are treated as HTTP proxies. ``none``/``direct`` yields
        the direct descriptor.
        """
        raw = (text or "").strip()
        if not raw:
            raise ConfigurationError("proxy", text, "empty proxy entry")
        if raw.lower() in ("none", "direct"):
            return cls.direct()
        if "://" not in raw:
            raw = f"http://{raw}"

        parts = urlsplit(raw)
        scheme = parts.scheme.lower()
        kind = _SCHEME_TO_KIND.get(scheme)
        if kind is None:
            raise ConfigurationError("proxy.kind", scheme, "unsupported proxy scheme")
        try:
            port = parts.port
        except ValueError as exc:
            raise ConfigurationError("proxy.port", raw, str(exc)) from exc
        if port is None:
            raise ConfigurationError("proxy.port", raw, "port is required")

        # urlsplit leaves userinfo percent-encoded; as_url() encodes it again.
        username = unquote(parts.username) if parts.username is not None else None
        password = unquote(parts.password) if parts.password is not None else None
        return cls.create(
            kind,
            parts.hostname or "",
            port,
            use_credentials=username is not None,
            username=username,
            password=password,
        )

    @property
    def is_direct(self) -> bool:
        return self.kind is ProxyKind.NONE

    @property
    def scheme(self) -> Optional[str]:
        """URL scheme used to reach the proxy.

        HTTP and HTTPS proxies are both spoken to in plain HTTP; HTTPS targets
        are tunnelled with CONNECT.
        """
        if self.kind is ProxyKind.NONE:
            return None
        if self.kind is ProxyKind.SOCKS5:
            return "socks5"
        return "http"

    def as_url(self) -> Optional[str]:
        """Return the proxy URL for a Requests ``proxies`` mapping, or None."""
        if self.kind is ProxyKind.NONE:
            return None
        auth = ""
        if self.credentials is not None:
            user = quote(self.credentials.username, safe="")
            secret = quote(self.credentials.password, safe="")
            auth = f"{user}:{secret}@"
        return f"{self.scheme}://{auth}{self.address}:{self.port}"

    def masked(self) -> str:
        """Log-safe rendering: no credentials, only the first IPv4 octet."""
        if self.kind is ProxyKind.NONE:
            return "direct"
        parts = self.address.split(".")
        host = (parts[0] + ".x.x.x") if len(parts) == 4 else self.address
        user = "user@" if self.credentials is not None else ""
        return f"{self.kind.value}://{user}{host}:{self.port}"


__all__ = ["ProxyKind", "ProxyCredentials", "ProxyDescriptor"]
