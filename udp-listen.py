#!/usr/bin/env python3
"""Print every UDP datagram received on a port - handy for watching relay output"""

import socket
import argparse
import logging

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s [%(levelname)s] %(message)s',
    datefmt='%Y-%m-%d %H:%M:%S'
)
logger = logging.getLogger(__name__)

MAX_DATAGRAM = 65535


def listen(host, port):
    with socket.socket(socket.AF_INET, socket.SOCK_DGRAM) as sock:
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        sock.bind((host, port))
        logger.info(f"Listening for UDP on {host}:{port} (Ctrl+C to stop)")
        while True:
            data, addr = sock.recvfrom(MAX_DATAGRAM)
            logger.info(f"{len(data)} bytes from {addr[0]}:{addr[1]}")
            print(data.decode("utf-8", errors="replace"), flush=True)


def main():
    parser = argparse.ArgumentParser(description="UDP datagram listener")
    parser.add_argument("--host", default="0.0.0.0", help="Address to bind (default: 0.0.0.0)")
    parser.add_argument("-p", "--port", type=int, default=8087, help="Port to bind (default: 8087)")
    args = parser.parse_args()

    try:
        listen(args.host, args.port)
    except KeyboardInterrupt:
        logger.info("Stopped")


if __name__ == "__main__":
    main()
