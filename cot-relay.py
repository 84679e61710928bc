#!/usr/bin/env python3
"""
CoT UDP Relay - forwards Cursor-on-Target messages from HTTP to UDP

Browsers can't send UDP, so a client POSTs the CoT XML to /cot and the
relay sends it on as a single datagram.
The implementation is in the cot_relay/ package:
  - cot_relay/config.py    - Configuration and constants
  - cot_relay/allowlist.py - UDP destination allowlist
  - cot_relay/forwarder.py - UDP send and relay results
  - cot_relay/server.py    - HTTP server and request handler
  - cot_relay/utils.py     - Logging and request body helpers
"""

import sys
import os

# Add the relay package directory to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from cot_relay.server import main

if __name__ == "__main__":
    main()
