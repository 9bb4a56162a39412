#!/usr/bin/env python3
"""
Client script for the video join API.

Reads local clips (and optional narration, music and watermark), sends them
base64-encoded to POST /api/join-video and writes the returned MP4.

Usage:
    python join_job.py clip1.mp4 clip2.mp4 clip3.mp4
    python join_job.py clip1.mp4 clip2.mp4 --voice voice.mp3 --backsound music.mp3
    python join_job.py clip1.mp4 --watermark logo.png --position top_right --opacity 60
    python join_job.py a.mp4 b.mp4 --transition 0.5 --output joined.mp4

Environment (.env supported):
    JOIN_BASE_URL   Service URL (default http://localhost:8000)
"""

import argparse
import base64
import os
import sys
import time
from pathlib import Path

import requests
from dotenv import load_dotenv

# Load .env file
load_dotenv()

# Configuration
BASE_URL = os.getenv("JOIN_BASE_URL", "http://localhost:8000")
REQUEST_TIMEOUT_SECONDS = 1800

POSITIONS = ["top_left", "top_right", "bottom_left", "bottom_right", "center"]


def encode_file(path: str) -> dict:
    """Read a file and wrap it as {name, data} payload."""
    file_path = Path(path)
    if not file_path.is_file():
        print(f"❌ File not found: {path}")
        sys.exit(1)
    return {
        "name": file_path.name,
        "data": base64.b64encode(file_path.read_bytes()).decode("ascii"),
    }


def build_payload(args: argparse.Namespace) -> dict:
    """Build the join request body from CLI arguments."""
    payload = {
        "videos": [encode_file(path) for path in args.videos],
        "voice": encode_file(args.voice) if args.voice else None,
        "backsound": encode_file(args.backsound) if args.backsound else None,
        "useBacksound": bool(args.backsound) and not args.mute_backsound,
        "watermark": None,
    }

    if args.watermark:
        watermark = encode_file(args.watermark)
        watermark.update({
            "position": args.position,
            "opacity": args.opacity,
        })
        if args.watermark_width:
            watermark["width"] = args.watermark_width
        payload["watermark"] = watermark

    if args.transition is not None:
        payload["transitionDuration"] = args.transition

    return payload


def submit_join(payload: dict) -> dict:
    """POST the join request and return the parsed JSON response."""
    print(f"📤 Sending {len(payload['videos'])} videos to {BASE_URL}/api/join-video ...")
    start = time.time()

    response = requests.post(
        f"{BASE_URL}/api/join-video",
        json=payload,
        timeout=REQUEST_TIMEOUT_SECONDS,
    )

    elapsed = time.time() - start
    try:
        body = response.json()
    except ValueError:
        print(f"❌ Non-JSON response ({response.status_code}): {response.text[:500]}")
        sys.exit(1)

    if response.status_code != 200 or not body.get("success"):
        print(f"❌ Join failed ({response.status_code}) after {elapsed:.1f}s")
        print(body.get("error") or body.get("detail") or body)
        sys.exit(1)

    print(f"✅ Joined in {elapsed:.1f}s")
    return body["data"]


def main():
    parser = argparse.ArgumentParser(
        description="Join clips with the video join service",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("videos", nargs="+", help="Clips to join, in order")
    parser.add_argument("--voice", type=str, default=None, help="Narration audio file")
    parser.add_argument("--backsound", type=str, default=None, help="Background music file")
    parser.add_argument("--mute-backsound", action="store_true", help="Send the music but do not mix it")
    parser.add_argument("--watermark", type=str, default=None, help="Watermark image (PNG)")
    parser.add_argument("--position", choices=POSITIONS, default="bottom_right", help="Watermark anchor")
    parser.add_argument("--opacity", type=int, default=100, help="Watermark opacity 0-100")
    parser.add_argument("--watermark-width", type=int, default=None, help="Watermark width in pixels")
    parser.add_argument("--transition", type=float, default=None, help="Cross-fade duration in seconds")
    parser.add_argument("--output", type=str, default="joined_video.mp4", help="Output MP4 path")

    args = parser.parse_args()

    data = submit_join(build_payload(args))

    output_path = Path(args.output)
    output_path.write_bytes(base64.b64decode(data["videoBase64"]))
    print(f"💾 Saved {data['sizeBytes'] / 1024 / 1024:.1f} MB to {output_path} (job {data['jobId']})")


if __name__ == "__main__":
    main()
