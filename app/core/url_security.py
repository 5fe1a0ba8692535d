"""
URL admission control for outbound analysis requests.

Guards the fetcher against SSRF: only absolute http(s) URLs without embedded
credentials whose host is not loopback, private, link-local or an
internal-style name are admitted. The same host predicate is applied to every
redirect hop and to the final URL the fetcher lands on.
"""

from __future__ import annotations

import ipaddress
import re
import socket
from urllib.parse import urlsplit, urlunsplit

from pydantic import BaseModel, ConfigDict

MAX_URL_LENGTH = 2048
ALLOWED_SCHEMES = ("http", "https")
DEFAULT_PORTS = {"http": 80, "https": 443}

PRIVATE_IPV4_NETWORKS = tuple(
    ipaddress.IPv4Network(cidr)
    for cidr in (
        "127.0.0.0/8",
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "169.254.0.0/16",
        "0.0.0.0/8",
    )
)

PRIVATE_IPV6_NETWORKS = tuple(
    ipaddress.IPv6Network(cidr)
    for cidr in (
        "::1/128",
        "::/128",
        "fe80::/10",
        "fc00::/7",
    )
)

INTERNAL_SUFFIXES = (".local", ".internal", ".localhost")

# Resolvers accept shorthand IPv4 ("127.1", "0x7f.0.0.1", "2130706433")
_NUMERIC_HOST_RE = re.compile(r"^(?:0x[0-9a-f]+|[0-9]+)(?:\.(?:0x[0-9a-f]+|[0-9]+)){0,3}$")


class UnsafeURLError(ValueError):
    """Raised when a URL is rejected by admission control. The message is safe to show users."""


class TargetDescriptor(BaseModel):
    """A validated, normalized analysis target."""

    model_config = ConfigDict(frozen=True)

    url: str
    scheme: str
    host: str
    port: int | None = None

    @property
    def origin(self) -> str:
        return _build_origin(self.scheme, self.host, self.port)


# ─────────────────────────────────────────────
# Host predicate
# ─────────────────────────────────────────────

def _parse_ip(host: str) -> ipaddress.IPv4Address | ipaddress.IPv6Address | None:
    try:
        return ipaddress.ip_address(host)
    except ValueError:
        pass

    if _NUMERIC_HOST_RE.match(host):
        try:
            return ipaddress.IPv4Address(socket.inet_aton(host))
        except OSError:
            return None
    return None


def _is_private_ip(ip: ipaddress.IPv4Address | ipaddress.IPv6Address) -> bool:
    if isinstance(ip, ipaddress.IPv4Address):
        return any(ip in net for net in PRIVATE_IPV4_NETWORKS)

    if ip.ipv4_mapped is not None:
        return _is_private_ip(ip.ipv4_mapped)
    # Strip a zone index before comparing ("fe80::1%eth0")
    bare = ipaddress.IPv6Address(str(ip).split("%", 1)[0])
    return any(bare in net for net in PRIVATE_IPV6_NETWORKS)


def is_host_private(hostname: str) -> bool:
    """
    True when the host points at a loopback, private, link-local or
    internal-style target. Accepts bracketed IPv6 literals.
    """
    host = hostname.strip().lower()
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    host = host.rstrip(".")

    if not host:
        return True

    if host == "localhost" or host.endswith(INTERNAL_SUFFIXES):
        return True

    ip = _parse_ip(host)
    if ip is not None:
        return _is_private_ip(ip)
    return False


def is_url_safe_for_fetch(url: str) -> bool:
    """Apply the host predicate to an arbitrary URL, e.g. the final post-redirect URL."""
    try:
        parts = urlsplit(str(url))
        hostname = parts.hostname
    except ValueError:
        return False

    if parts.scheme.lower() not in ALLOWED_SCHEMES or not hostname:
        return False
    return not is_host_private(hostname)


# ─────────────────────────────────────────────
# Admission
# ─────────────────────────────────────────────

def _build_origin(scheme: str, host: str, port: int | None) -> str:
    netloc = f"[{host}]" if ":" in host else host
    if port is not None and port != DEFAULT_PORTS.get(scheme):
        netloc = f"{netloc}:{port}"
    return f"{scheme}://{netloc}"


def validate_target_url(raw: object) -> TargetDescriptor:
    """
    Validate and normalize a user-supplied URL.

    Rules are applied in order and the first failure wins:
    1. non-empty string of at most 2048 characters
    2. absolute URL
    3. http or https scheme
    4. no embedded username/password
    5. host is not private, loopback, link-local or internal

    Raises:
        UnsafeURLError: with a user-facing reason.
    """
    if not isinstance(raw, str):
        raise UnsafeURLError("Invalid URL.")

    candidate = raw.strip()
    if not candidate:
        raise UnsafeURLError("Invalid URL.")
    if len(candidate) > MAX_URL_LENGTH:
        raise UnsafeURLError("URL is too long.")

    try:
        parts = urlsplit(candidate)
        hostname = parts.hostname
        port = parts.port
    except ValueError:
        raise UnsafeURLError("Invalid URL. Use a complete URL (e.g. https://example.com).") from None

    scheme = parts.scheme.lower()
    if not scheme:
        raise UnsafeURLError("Invalid URL. Use a complete URL (e.g. https://example.com).")
    if scheme not in ALLOWED_SCHEMES:
        raise UnsafeURLError("Only http and https URLs are accepted.")
    if not parts.netloc:
        raise UnsafeURLError("Invalid URL. Use a complete URL (e.g. https://example.com).")
    if "@" in parts.netloc:
        raise UnsafeURLError("Credentials in the URL are not allowed.")
    if not hostname:
        raise UnsafeURLError("Invalid URL. Use a complete URL (e.g. https://example.com).")
    if is_host_private(hostname):
        raise UnsafeURLError("This URL is not allowed.")

    path = parts.path or "/"
    if not parts.query and path != "/" and path.endswith("/"):
        path = path[:-1]

    origin = _build_origin(scheme, hostname, port)
    normalized = urlunsplit(("", "", path, parts.query, "")) if parts.query else path
    return TargetDescriptor(
        url=origin + normalized,
        scheme=scheme,
        host=hostname,
        port=port,
    )
