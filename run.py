#!/usr/bin/env python3
"""
Push-up rep counting with anti-cheat checks: live (webcam), offline (video)
or keypoint replay.
Usage:
  Live:    python run.py --live [--camera 0] [--no-mirror]
  Offline: python run.py --video path/to/video.mp4
  Replay:  python run.py --replay keypoints.jsonl
"""
from __future__ import annotations

import argparse
import json
import logging
import os
import sys
from typing import Any

from repguard.config import ConfigError, load_config
from repguard.frame import Frame
from repguard.session import Session

logger = logging.getLogger("repguard.run")


def run_offline(video_path: str, session: Session) -> dict[str, Any]:
    """Process a video file frame by frame through one session."""
    from repguard.io_stream import video_frames
    from repguard.pose import create_pose_detector, process_frame

    pose = create_pose_detector()
    session.start()
    for frame_bgr, _, timestamp_ms in video_frames(video_path):
        session.process(process_frame(frame_bgr, pose, timestamp_ms))
    return session.stop()


def run_replay(path: str, session: Session) -> dict[str, Any]:
    """Feed a JSON-lines file of keypoint payloads (one frame per line)."""
    session.start()
    with open(path) as f:
        for lineno, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                frame = Frame.from_payload(json.loads(line))
            except ValueError as e:
                # json.JSONDecodeError is a ValueError too
                logger.warning("replay: skipping line %s: %s", lineno, e)
                continue
            session.process(frame)
    return session.stop()


def main() -> None:
    ap = argparse.ArgumentParser(description="Push-up rep counter: live webcam, offline video or keypoint replay")
    src = ap.add_mutually_exclusive_group(required=True)
    src.add_argument("--live", action="store_true", help="Use live webcam")
    src.add_argument("--video", type=str, default=None, help="Path to video file (offline mode)")
    src.add_argument("--replay", type=str, default=None, help="Path to JSON-lines keypoint file")
    ap.add_argument("--camera", type=int, default=0, help="Camera device id (default 0)")
    ap.add_argument("--no-mirror", action="store_true", help="Do not mirror the live display")
    ap.add_argument("--hold-ms", type=float, default=None, help="Minimum dwell in the down position (ms)")
    ap.add_argument("--env-file", type=str, default=None, help="Load REPGUARD_* settings from this .env file")
    ap.add_argument("-v", "--verbose", action="store_true", help="Debug logging (state transitions)")
    args = ap.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        config = load_config(args.env_file, hold_time_ms=args.hold_ms)
    except ConfigError as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        sys.exit(2)

    if args.live:
        from repguard.live import run_live_pipeline

        summary = run_live_pipeline(config, camera_id=args.camera, mirrored=not args.no_mirror)
    elif args.video:
        if not os.path.isfile(args.video):
            print(f"Error: video file not found: {args.video}", file=sys.stderr)
            sys.exit(1)
        summary = run_offline(args.video, Session(config))
    else:
        if not os.path.isfile(args.replay):
            print(f"Error: keypoint file not found: {args.replay}", file=sys.stderr)
            sys.exit(1)
        summary = run_replay(args.replay, Session(config))

    print(json.dumps(summary, indent=2))


if __name__ == "__main__":
    main()
