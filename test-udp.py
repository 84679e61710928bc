#!/usr/bin/env python3
"""Smoke test for a running CoT relay - checks it's up and forwards a sample event"""

import sys
import argparse
from datetime import datetime, timedelta, timezone

import requests

DEFAULT_URL = "http://localhost:8080"


def sample_cot_event(uid="TEST-12345", callsign="TEST-UNIT"):
    """Build a friendly ground unit CoT event with a 5 minute stale time."""
    now = datetime.now(timezone.utc)
    stale = now + timedelta(minutes=5)
    fmt = lambda t: t.strftime("%Y-%m-%dT%H:%M:%S.") + f"{t.microsecond // 1000:03d}Z"
    return f"""<?xml version="1.0" encoding="UTF-8" standalone="yes"?>
<event version="2.0" uid="{uid}" type="a-f-G-U-C" time="{fmt(now)}" start="{fmt(now)}" stale="{fmt(stale)}" how="m-g">
    <point lat="45.123456" lon="9.654321" hae="100.0" ce="10.0" le="9999999.0"/>
    <detail>
        <contact callsign="{callsign}"/>
        <__group name="Cyan" role="Team Member"/>
        <status battery="100"/>
        <track speed="0" course="0"/>
    </detail>
</event>"""


def check_running(base_url):
    """Return the relay's health descriptor, or None if it can't be reached."""
    try:
        r = requests.get(f"{base_url}/", timeout=5)
        r.raise_for_status()
        return r.json()
    except (requests.RequestException, ValueError):
        return None


def send_test_event(base_url, udp_host, udp_port):
    r = requests.post(
        f"{base_url}/cot",
        data=sample_cot_event().encode("utf-8"),
        headers={
            "Content-Type": "application/xml",
            "X-UDP-Host": udp_host,
            "X-UDP-Port": str(udp_port),
        },
        timeout=10,
    )
    try:
        data = r.json()
    except ValueError:
        data = {"success": False, "error": f"HTTP {r.status_code}: {r.text[:200]}"}
    return r.status_code, data


def main():
    parser = argparse.ArgumentParser(description="CoT relay UDP smoke test")
    parser.add_argument("--url", default=DEFAULT_URL, help=f"Relay base URL (default: {DEFAULT_URL})")
    parser.add_argument("--udp-host", default="127.0.0.1", help="UDP destination host")
    parser.add_argument("--udp-port", type=int, default=8087, help="UDP destination port")
    args = parser.parse_args()
    base_url = args.url.rstrip("/")

    print("=" * 42)
    print("CoT Relay UDP Test")
    print("=" * 42)

    print("\nTest 1: Checking relay server...")
    health = check_running(base_url)
    if not health:
        print("✗ Relay server is not running")
        print("  Start it with: ./cot-relay.py")
        return 1
    print(f"✓ {health.get('service', 'Relay')} {health.get('version', '')} is {health.get('status')}")

    print("\nTest 2: Sending test CoT message...")
    try:
        status, data = send_test_event(base_url, args.udp_host, args.udp_port)
    except requests.RequestException as e:
        print(f"✗ Request failed: {e}")
        return 1

    if status == 200 and data.get("success"):
        print("✓ Message sent successfully")
        print(f"  Destination: {data['destination']} ({data['size']} bytes)")
    else:
        print("✗ Failed to send message")
        print(f"  HTTP {status}: {data.get('error')}")
        return 1

    print("\n" + "=" * 42)
    print("All tests passed! ✓")
    print("=" * 42)
    return 0


if __name__ == "__main__":
    sys.exit(main())
