"""Rate limiting for the vault sync auth endpoints.

X-Forwarded-For is honoured only when the direct peer is a configured
trusted proxy (settings.trusted_proxy_cidrs).
"""

import ipaddress
from functools import lru_cache

from slowapi import Limiter
from slowapi.util import get_remote_address

from .config import get_settings
from .logging_config import get_logger

logger = get_logger("vaultsync.rate_limit")

Network = ipaddress.IPv4Network | ipaddress.IPv6Network


@lru_cache
def trusted_networks() -> tuple[Network, ...]:
    """Parse the trusted proxy CIDRs once, skipping bad entries."""
    networks = []
    for cidr in get_settings().trusted_proxy_cidrs:
        try:
            networks.append(ipaddress.ip_network(cidr.strip(), strict=False))
        except ValueError:
            logger.warning(f"Ignoring invalid trusted proxy CIDR: {cidr!r}")
    return tuple(networks)


def is_trusted_proxy(ip_str: str) -> bool:
    try:
        addr = ipaddress.ip_address(ip_str)
    except ValueError:
        return False
    return any(addr in network for network in trusted_networks())


def get_client_ip(request) -> str:
    """Resolve the client IP for rate-limit bucketing."""
    direct_ip = get_remote_address(request)
    if is_trusted_proxy(direct_ip):
        forwarded_for = request.headers.get("x-forwarded-for", "")
        client_ip = forwarded_for.split(",")[0].strip()
        if client_ip:
            return client_ip
    return direct_ip


limiter = Limiter(key_func=get_client_ip)
