"""Destination allowlist for outbound UDP datagrams."""

import ipaddress
from typing import Iterable, Optional

from .config import DEFAULT_MATCH_MODE, MATCH_MODES


def cidr_match(entry: str, host: str) -> bool:
    """True if host is an IP address inside the network written in entry."""
    try:
        network = ipaddress.ip_network(entry, strict=False)
        address = ipaddress.ip_address(host)
    except ValueError:
        return False
    return address.version == network.version and address in network


def prefix_match(entry: str, host: str) -> bool:
    """Legacy textual range check, as the Rust relay did it.

    The network address minus its last dotted component must equal the
    leading components of host. "10.0.0.0/8" therefore admits 10.0.0.x
    only, and "192.168.0.0/16" admits 192.168.0.x only. The prefix length
    after the slash is ignored. Components are compared whole, so unlike
    the JS relay's plain startswith, "192.168.1.0/24" does not admit
    192.168.10.1.
    """
    network, _, _bits = entry.partition("/")
    network_parts = network.split(".")
    host_parts = host.split(".")
    if len(network_parts) < 3 or len(host_parts) != 4:
        return False
    prefix = network_parts[:-1]
    return host_parts[:len(prefix)] == prefix


_MATCHERS = {
    "cidr": cidr_match,
    "prefix": prefix_match,
}


class DestinationValidator:
    """Decides whether a UDP destination host is admitted.

    Entries are either literal hosts (exact string match) or ranges
    written as ``network/bits``. With no entries every host is allowed;
    the caller is expected to warn about that at startup.
    """

    def __init__(self, entries: Optional[Iterable[str]] = None, match_mode: str = DEFAULT_MATCH_MODE):
        if match_mode not in MATCH_MODES:
            raise ValueError(f"Unknown match mode: {match_mode}")
        entries = tuple(entries) if entries else ()
        self.entries = entries
        self.match_mode = match_mode
        self.literals = frozenset(e for e in entries if "/" not in e)
        self.ranges = tuple(e for e in entries if "/" in e)
        self._range_match = _MATCHERS[match_mode]

    @classmethod
    def from_config(cls, config) -> "DestinationValidator":
        return cls(config.allowed_destinations, config.match_mode)

    @property
    def allow_all(self) -> bool:
        return not self.literals and not self.ranges

    def is_allowed(self, host: str) -> bool:
        if self.allow_all:
            return True
        if host in self.literals:
            return True
        return any(self._range_match(entry, host) for entry in self.ranges)

    def describe(self) -> str:
        if self.allow_all:
            return "all destinations"
        return ", ".join(self.entries)
