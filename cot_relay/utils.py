"""Utility functions for the relay."""

import json
import logging
from logging.handlers import RotatingFileHandler
from typing import Optional

from .config import LOG_BACKUP_COUNT, LOG_MAX_BYTES, MAX_BODY_BYTES, is_decimal

LOG_FORMAT = '%(asctime)s [%(levelname)s] %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'

# Upper bound on a single chunk-size line
MAX_CHUNK_LINE = 1024


class BodyReadError(ValueError):
    """The request body was malformed or cut off."""


def setup_logging(level="INFO", log_file: Optional[str] = None) -> None:
    """Configure root logging to stderr, plus a rotating file if log_file is set."""
    logging.basicConfig(level=level, format=LOG_FORMAT, datefmt=LOG_DATEFMT)
    if log_file:
        handler = RotatingFileHandler(
            log_file, maxBytes=LOG_MAX_BYTES, backupCount=LOG_BACKUP_COUNT
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))
        logging.getLogger().addHandler(handler)


def json_bytes(data) -> bytes:
    return json.dumps(data).encode("utf-8")


def _read_exact(rfile, length: int) -> bytes:
    data = rfile.read(length)
    if len(data) != length:
        raise BodyReadError(f"connection closed after {len(data)} of {length} bytes")
    return data


def _read_chunked(rfile) -> bytes:
    """Decode a Transfer-Encoding: chunked body. Trailers are discarded."""
    parts = []
    total = 0
    while True:
        line = rfile.readline(MAX_CHUNK_LINE + 1)
        if not line.endswith(b"\n"):
            raise BodyReadError("truncated or oversized chunk header")
        size_text = line.split(b";", 1)[0].strip()
        try:
            size = int(size_text, 16)
        except ValueError:
            raise BodyReadError(f"invalid chunk size {size_text!r}")
        if size < 0:
            raise BodyReadError(f"invalid chunk size {size_text!r}")
        if size == 0:
            break
        total += size
        if total > MAX_BODY_BYTES:
            raise BodyReadError(f"body larger than {MAX_BODY_BYTES} bytes")
        parts.append(_read_exact(rfile, size))
        if _read_exact(rfile, 2) != b"\r\n":
            raise BodyReadError("missing CRLF after chunk data")

    # Trailer section ends with an empty line
    while True:
        line = rfile.readline(MAX_CHUNK_LINE + 1)
        if not line or line in (b"\r\n", b"\n"):
            break
    return b"".join(parts)


def read_request_body(headers, rfile) -> bytes:
    """Read the whole request body as raw bytes.

    Handles Content-Length and chunked transfer encoding. A request with
    neither has an empty body. Raises BodyReadError on bad framing, a
    short read, or a body over MAX_BODY_BYTES.
    """
    transfer_encoding = headers.get("Transfer-Encoding", "")
    if "chunked" in transfer_encoding.lower():
        return _read_chunked(rfile)

    raw_length = headers.get("Content-Length")
    if raw_length is None:
        return b""
    if not is_decimal(raw_length.strip()):
        raise BodyReadError(f"invalid Content-Length {raw_length!r}")
    length = int(raw_length.strip(), 10)
    if length > MAX_BODY_BYTES:
        raise BodyReadError(f"Content-Length {length} larger than {MAX_BODY_BYTES} bytes")
    if length == 0:
        return b""
    return _read_exact(rfile, length)
