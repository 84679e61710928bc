"""Fixtures: live relay servers on ephemeral ports and a UDP receiver."""

import socket
import threading

import pytest

from cot_relay.config import RelayConfig
from cot_relay.server import make_server


@pytest.fixture
def start_relay():
    """Start a relay with the given RelayConfig settings; returns its base URL."""
    servers = []

    def _start(**settings):
        config = RelayConfig(listen_host="127.0.0.1", **settings)
        server = make_server(config, port=0)
        thread = threading.Thread(target=server.serve_forever, daemon=True)
        thread.start()
        servers.append((server, thread))
        return f"http://127.0.0.1:{server.server_address[1]}"

    yield _start

    for server, thread in servers:
        server.shutdown()
        server.server_close()
        thread.join(timeout=5)


@pytest.fixture
def relay_url(start_relay):
    """Relay with no allowlist (every destination allowed)."""
    return start_relay()


class UDPReceiver:
    """Bound UDP socket on 127.0.0.1 that collects datagrams for assertions."""

    def __init__(self):
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        self.sock.bind(("127.0.0.1", 0))
        self.host, self.port = self.sock.getsockname()

    def receive(self, timeout=0.5):
        """Return every datagram that arrives before timeout passes with nothing new."""
        datagrams = []
        self.sock.settimeout(timeout)
        while True:
            try:
                data, _ = self.sock.recvfrom(65535)
            except socket.timeout:
                return datagrams
            datagrams.append(data)

    def close(self):
        self.sock.close()


@pytest.fixture
def udp_receiver():
    receiver = UDPReceiver()
    yield receiver
    receiver.close()
