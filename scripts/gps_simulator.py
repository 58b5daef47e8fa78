#!/usr/bin/env python3
"""
GPS simulator for ride tracking.

Replays a track of coordinates against
POST /api/scheduled-rides/{ride_id}/location at a fixed interval,
the way a driver's phone would.

Usage:
    python scripts/gps_simulator.py RIDE_ID [--api-url URL] [--interval 5] [--loop]
"""

import argparse
import logging
import sys
import time
from typing import List, Optional, Tuple

import httpx

logger = logging.getLogger("gps_simulator")

# Sample route coordinates (Bangalore area)
DEFAULT_TRACK: List[Tuple[float, float]] = [
    (12.9716, 77.5946),
    (12.9750, 77.5980),
    (12.9780, 77.6020),
    (12.9820, 77.6050),
    (12.9860, 77.6080),
    (12.9900, 77.6110),
    (12.9940, 77.6140),
    (12.9980, 77.6170),
    (13.0020, 77.6200),
]


def send_sample(client: httpx.Client, ride_id: str, lat: float, lng: float) -> Optional[dict]:
    """Post one sample; returns the ride payload or None on failure."""
    try:
        response = client.post(f"/api/scheduled-rides/{ride_id}/location", json={"lat": lat, "lng": lng})
        response.raise_for_status()
    except httpx.HTTPError as e:
        logger.error(f"Error updating location: {e}")
        return None
    return response.json().get("data")


def run(
    ride_id: str,
    api_url: str,
    interval: float,
    track: List[Tuple[float, float]],
    loop: bool = False,
    role: str = "operator",
) -> int:
    headers = {"X-User-Role": role}
    sent = 0
    with httpx.Client(base_url=api_url, headers=headers, timeout=10.0) as client:
        while True:
            for lat, lng in track:
                logger.info(f"Updating location: lat {lat}, lng {lng}")
                ride = send_sample(client, ride_id, lat, lng)
                if ride is not None:
                    sent += 1
                    logger.info(f"Location accepted, ride status: {ride.get('status')}")
                time.sleep(interval)
            if not loop:
                return sent


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Replay a GPS track against a scheduled ride")
    parser.add_argument("ride_id", help="Scheduled ride ID")
    parser.add_argument("--api-url", default="http://localhost:8000", help="Backend base URL")
    parser.add_argument("--interval", type=float, default=5.0, help="Seconds between samples")
    parser.add_argument("--loop", action="store_true", help="Restart the track when it ends")
    parser.add_argument("--role", default="operator", help="Role forwarded in X-User-Role")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(message)s")
    logger.info(f"GPS simulator started for ride {args.ride_id} (every {args.interval}s)")
    try:
        sent = run(args.ride_id, args.api_url, args.interval, DEFAULT_TRACK, loop=args.loop, role=args.role)
    except KeyboardInterrupt:
        logger.info("Simulator stopped")
        return 0
    logger.info(f"Track finished, {sent} sample(s) accepted")
    return 0


if __name__ == "__main__":
    sys.exit(main())
