"""UDP forwarding and the result of one relay attempt."""

import logging
import socket
from dataclasses import dataclass
from typing import Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Forwarded:
    destination: str
    byte_count: int

    status = 200

    def to_json(self) -> dict:
        return {"success": True, "destination": self.destination, "size": self.byte_count}


@dataclass(frozen=True)
class Rejected:
    """Caller error: bad port (400) or destination not allowed (403)."""
    reason: str
    status: int = 400

    def to_json(self) -> dict:
        return {"success": False, "error": self.reason}


@dataclass(frozen=True)
class SendFailed:
    reason: str

    status = 500

    def to_json(self) -> dict:
        return {"success": False, "error": self.reason}


RelayResult = Union[Forwarded, Rejected, SendFailed]


def format_destination(host: str, port: int) -> str:
    return f"{host}:{port}"


def send_datagram(host: str, port: int, payload: bytes) -> RelayResult:
    """Send payload as one UDP datagram to (host, port).

    A fresh socket is opened for every call and closed on every exit
    path. Nothing is retried; OS errors (resolution, unreachable route,
    oversize datagram) come back as SendFailed.
    """
    destination = format_destination(host, port)
    try:
        family, socktype, proto, _, sockaddr = socket.getaddrinfo(
            host, port, type=socket.SOCK_DGRAM)[0]
        with socket.socket(family, socktype, proto) as sock:
            sock.sendto(payload, sockaddr)
    except (OSError, UnicodeError) as e:
        # UnicodeError: host name that IDNA encoding rejects
        logger.error(f"UDP send error to {destination}: {e}")
        return SendFailed(f"UDP send error: {e}")

    logger.info(f"Forwarded CoT message to {destination} ({len(payload)} bytes)")
    return Forwarded(destination, len(payload))
