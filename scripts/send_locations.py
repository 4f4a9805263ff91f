"""
Demo script that sends a synthetic phone track to the tracker API.

The track mixes the situations the adaptive filter treats differently:
1. Driving at speed: recorded every ~10 seconds
2. Standing still: recorded at most once a minute
3. Poor GPS accuracy: recorded at most every 5 minutes
4. Hovering within 25 m of the last point: recorded at most every 10 minutes

Usage:
    python scripts/send_locations.py
    python scripts/send_locations.py --pings 200 --interval 5
"""
import requests
import argparse
from datetime import datetime, timezone, timedelta

# Central Park, NYC
START_LAT = 40.7812
START_LON = -73.9665

API_URL = "http://localhost:8000"


def build_track(pings: int, interval: int) -> list:
    """Build pings cycling through driving, stationary, inaccurate and hovering phases."""
    start = datetime.now(timezone.utc) - timedelta(seconds=pings * interval)
    lat, lon = START_LAT, START_LON
    locations = []

    for i in range(pings):
        phase = (i // 20) % 4
        motion, speed, accuracy = ["automotive"], 12.0, 5.0

        if phase == 0:
            lat += 0.001  # ~110 m per ping
        elif phase == 1:
            motion, speed = ["stationary"], 0.0
            lat += 0.0005
        elif phase == 2:
            accuracy = 65.0
            lat += 0.001
        else:
            motion, speed = ["walking"], 1.2
            lat += 0.00001  # a meter or so

        locations.append({
            "type": "Feature",
            "geometry": {"type": "Point", "coordinates": [lon, lat]},
            "properties": {
                "timestamp": (start + timedelta(seconds=i * interval)).isoformat(),
                "motion": motion,
                "speed": speed,
                "horizontalAccuracy": accuracy,
                "verticalAccuracy": 4.0,
                "altitude": 30.0,
                "deviceId": "demo-phone",
                "batteryState": "charging" if i % 2 else "unplugged",
                "batteryLevel": 0.8,
            },
        })

    return locations


def main():
    parser = argparse.ArgumentParser(description="Send a synthetic location batch")
    parser.add_argument("--pings", type=int, default=80, help="Number of pings to send (default: 80)")
    parser.add_argument("--interval", type=int, default=5, help="Seconds between pings (default: 5)")
    args = parser.parse_args()

    try:
        response = requests.get(f"{API_URL}/health", timeout=5)
        if response.status_code != 200:
            print("ERROR: API not healthy")
            return
    except requests.ConnectionError:
        print("ERROR: Cannot connect to API at", API_URL)
        print("Make sure to run: uvicorn src.tracker.main:app --reload")
        return

    locations = build_track(args.pings, args.interval)
    response = requests.post(f"{API_URL}/location", json={"locations": locations}, timeout=30)
    data = response.json()

    if response.status_code != 200:
        print(f"ERROR {response.status_code}: {data.get('detail')}")
        return

    print(f"Sent:     {len(locations)} pings")
    print(f"Recorded: {data['accepted']}")
    print()

    reasons = {}
    for skipped in data["skipped"]:
        key = skipped["detail"] or skipped["reason"]
        reasons[key] = reasons.get(key, 0) + 1
    for reason, count in sorted(reasons.items()):
        print(f"  skipped ({reason}): {count}")


if __name__ == "__main__":
    main()
