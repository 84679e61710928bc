"""HTTP server that forwards CoT messages to UDP destinations."""

import argparse
import logging
import signal
import sys
import threading
from http import HTTPStatus
from http.server import HTTPServer, BaseHTTPRequestHandler
from socketserver import ThreadingMixIn
from typing import Optional
from urllib.parse import urlparse

from .config import (
    CORS_HEADERS, MATCH_MODES, RELAY_PATH, SERVICE_NAME, VERSION,
    ConfigError, RelayConfig, is_decimal, load_config
)
from .allowlist import DestinationValidator
from .forwarder import Rejected, RelayResult, SendFailed, send_datagram
from .utils import BodyReadError, json_bytes, read_request_body, setup_logging

logger = logging.getLogger(__name__)

NOT_ALLOWED_ERROR = "UDP destination not allowed. Configure ALLOWED_UDP_HOSTS environment variable."
INVALID_PORT_ERROR = "Invalid UDP port number"


def parse_udp_port(value: Optional[str], default: int) -> Optional[int]:
    """Port from the X-UDP-Port header, or None if it isn't a usable port."""
    if value is None or not value.strip():
        return default
    text = value.strip()
    if not is_decimal(text):
        return None
    port = int(text, 10)
    if not 1 <= port <= 65535:
        return None
    return port


def relay_message(config: RelayConfig, validator: DestinationValidator,
                  host: Optional[str], port: Optional[str], payload: bytes) -> RelayResult:
    """Validate the destination and forward payload as one datagram.

    host and port are the raw header values (None when absent). The host
    check runs before the port check; nothing is sent on rejection.
    """
    host = (host or "").strip() or config.default_udp_host

    if not validator.is_allowed(host):
        logger.warning(f"Blocked UDP destination: {host} (not in allowlist)")
        return Rejected(NOT_ALLOWED_ERROR, status=403)

    udp_port = parse_udp_port(port, config.default_udp_port)
    if udp_port is None:
        logger.warning(f"Invalid UDP port: {port!r}")
        return Rejected(INVALID_PORT_ERROR, status=400)

    return send_datagram(host, udp_port, payload)


class CotRelayHandler(BaseHTTPRequestHandler):
    """Request handler for the relay: health check, CORS preflight and POST /cot."""

    server_version = f"CoTRelay/{VERSION}"

    def log_message(self, format, *args):
        logger.debug("%s - %s", self.address_string(), format % args)

    def _send_cors_headers(self):
        for name, value in CORS_HEADERS.items():
            self.send_header(name, value)

    def _json(self, data, status=200):
        """Send JSON response with CORS headers."""
        body = json_bytes(data)
        self.send_response(status)
        self.send_header("Content-Type", "application/json")
        self.send_header("Content-Length", str(len(body)))
        self.send_header("Cache-Control", "no-cache")
        self._send_cors_headers()
        self.end_headers()
        if self.command != "HEAD":
            self.wfile.write(body)

    def _not_found(self):
        self._json({"error": "Not found"}, 404)

    def send_error(self, code, message=None, explain=None):
        """Send http.server's own protocol errors as JSON (with CORS)."""
        if code == HTTPStatus.NOT_IMPLEMENTED:
            # Unknown method: same answer as any other unmatched route
            self.close_connection = True
            self._not_found()
            return
        logger.warning(f"HTTP {code} for {self.address_string()}: {message or explain}")
        self.close_connection = True
        self._json({"error": message or f"HTTP {code}"}, code)

    @property
    def route(self) -> str:
        return urlparse(self.path).path

    def do_OPTIONS(self):
        """Handle CORS preflight requests."""
        self.send_response(200)
        self.send_header("Content-Length", "0")
        self._send_cors_headers()
        self.end_headers()

    def do_GET(self):
        """Handle GET requests."""
        if self.route == "/":
            self._json({
                "status": "running",
                "service": SERVICE_NAME,
                "version": VERSION,
            })
        else:
            self._not_found()

    def do_POST(self):
        """Handle POST requests."""
        if self.route != RELAY_PATH:
            self._not_found()
            return

        try:
            payload = read_request_body(self.headers, self.rfile)
        except (BodyReadError, OSError) as e:
            logger.error(f"Error reading body: {e}")
            self._json({"success": False, "error": f"Error reading body: {e}"}, 500)
            # Framing is unknown, the connection can't be reused
            self.close_connection = True
            return

        try:
            result = relay_message(
                self.server.config,
                self.server.validator,
                self.headers.get("X-UDP-Host"),
                self.headers.get("X-UDP-Port"),
                payload,
            )
        except Exception as e:
            logger.exception("Unexpected error relaying message")
            result = SendFailed(str(e))

        self._json(result.to_json(), result.status)

    do_PUT = do_DELETE = do_PATCH = do_HEAD = _not_found


class RelayHTTPServer(ThreadingMixIn, HTTPServer):
    """One thread per request. Holds the immutable config and validator."""

    daemon_threads = True

    def __init__(self, server_address, config: RelayConfig, handler_class=CotRelayHandler):
        self.config = config
        self.validator = DestinationValidator.from_config(config)
        super().__init__(server_address, handler_class)


def make_server(config: RelayConfig, host: Optional[str] = None, port: Optional[int] = None) -> RelayHTTPServer:
    """Bind a relay server. host/port default to the configured listen address."""
    address = (
        config.listen_host if host is None else host,
        config.listen_port if port is None else port,
    )
    return RelayHTTPServer(address, config)


def log_banner(server: RelayHTTPServer):
    host, port = server.server_address[:2]
    logger.info("==============================================")
    logger.info(f"  {SERVICE_NAME} {VERSION}")
    logger.info(f"  HTTP server listening on {host}:{port}")
    logger.info(f"  Endpoint: http://localhost:{port}{RELAY_PATH}")
    if server.validator.allow_all:
        logger.warning("  All UDP destinations allowed (development mode)")
        logger.warning("  Set ALLOWED_UDP_HOSTS env var for production")
    else:
        logger.info(f"  Allowed UDP destinations ({server.validator.match_mode}): "
                    f"{server.validator.describe()}")
    logger.info("==============================================")


def run_server(config: RelayConfig):
    """Start the HTTP server and block until SIGINT/SIGTERM."""
    server = make_server(config)

    def handle_signal(signum, frame):
        logger.info("Received shutdown signal, shutting down relay...")
        # shutdown() waits for serve_forever() to return, so it can't run
        # on the thread that is inside serve_forever()
        threading.Thread(target=server.shutdown, daemon=True).start()

    signal.signal(signal.SIGTERM, handle_signal)
    signal.signal(signal.SIGINT, handle_signal)

    log_banner(server)
    try:
        server.serve_forever()
    finally:
        server.server_close()
        logger.info("Server closed")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=f"{SERVICE_NAME} - forwards HTTP POST bodies as UDP datagrams")
    parser.add_argument("-p", "--port", type=int,
                        help="Port to listen on (default: $PORT or 8080)")
    parser.add_argument("--host", help="Address to bind (default: $HOST or 0.0.0.0)")
    parser.add_argument("--allow",
                        help="Comma-separated allowed UDP hosts/ranges (default: $ALLOWED_UDP_HOSTS)")
    parser.add_argument("--match", choices=MATCH_MODES,
                        help="How network/bits entries are matched (default: cidr)")
    parser.add_argument("--config", help="YAML config file (default: $RELAY_CONFIG)")
    parser.add_argument("--log-file", help="Also write logs to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def main(argv=None):
    """Entry point for the server."""
    args = build_parser().parse_args(argv)

    try:
        config = load_config(config_file=args.config).with_overrides(
            listen_host=args.host,
            listen_port=args.port,
            allowed_destinations=args.allow,
            match_mode=args.match,
            log_file=args.log_file,
            log_level="DEBUG" if args.verbose else None,
        )
    except ConfigError as e:
        setup_logging()
        logger.error(f"Configuration error: {e}")
        sys.exit(2)

    setup_logging(config.log_level.upper(), config.log_file)
    try:
        run_server(config)
    except OSError as e:
        logger.error(f"Can't listen on {config.listen_host}:{config.listen_port}: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
