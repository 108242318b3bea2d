from __future__ import annotations

import asyncio
import base64
import concurrent.futures
import json
import logging
import math
from typing import Any, Optional

# Ensure session and rep logging is visible when running under uvicorn
logging.getLogger("repguard.session").setLevel(logging.INFO)
logging.getLogger("repguard.reps").setLevel(logging.INFO)

from fastapi import FastAPI
from fastapi import WebSocket, WebSocketDisconnect

import cv2
import numpy as np

from repguard.config import Config, ConfigError, load_config
from repguard.frame import Frame
from repguard.pose import create_pose_detector, process_frame
from repguard.session import Session, Viewport

logger = logging.getLogger("repguard.web")

app = FastAPI(title="RepGuard")

# One worker: pose inference for a socket never overlaps its next frame.
_LIVE_EXECUTOR = concurrent.futures.ThreadPoolExecutor(max_workers=1, thread_name_prefix="live_pose")


def _start_session(payload: dict[str, Any]) -> Session:
    """Server settings (environment, .env) overlaid with the client's threshold overrides."""
    overrides = payload.get("config") or {}
    if not isinstance(overrides, dict):
        raise ConfigError(f"config must be an object, got {type(overrides).__name__}")
    config = Config.from_mapping(overrides, base=load_config())
    viewport = None
    if payload.get("viewport"):
        try:
            viewport = Viewport.from_mapping(payload["viewport"])
            viewport.transform()
        except (KeyError, TypeError, ValueError) as e:
            raise ConfigError(f"bad viewport: {e}") from e
    return Session(config, viewport).start()


async def _reject(websocket: WebSocket, error: ConfigError) -> None:
    await websocket.send_text(json.dumps({"type": "error", "detail": str(error)}))
    await websocket.close(code=1008)


def _decode_image(image_data: str) -> Optional[np.ndarray]:
    if image_data.startswith("data:"):
        image_data = image_data.split(",", 1)[1]
    try:
        img_bytes = base64.b64decode(image_data)
    except (ValueError, TypeError):
        return None
    if not img_bytes:
        return None
    np_arr = np.frombuffer(img_bytes, np.uint8)
    return cv2.imdecode(np_arr, cv2.IMREAD_COLOR)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/config")
def default_config() -> dict[str, float]:
    return Config().as_dict()


@app.websocket("/ws/live")
async def live_socket(websocket: WebSocket) -> None:
    """
    Messages in:  start {config, viewport} | frame {timestamp_ms, keypoints}
                  | image {timestamp_ms, image} | stop
    Messages out: result per frame, summary on stop, error on bad config.
    """
    await websocket.accept()
    session: Optional[Session] = None
    pose = None
    try:
        while True:
            msg = await websocket.receive_text()
            try:
                payload = json.loads(msg)
            except json.JSONDecodeError:
                continue
            if not isinstance(payload, dict):
                continue
            kind = payload.get("type", "frame")

            if kind == "start":
                if session is not None:
                    session.stop()
                try:
                    session = _start_session(payload)
                except ConfigError as e:
                    await _reject(websocket, e)
                    return
                await websocket.send_text(json.dumps({"type": "started", "config": session.config.as_dict()}))
                continue

            if kind == "stop":
                summary = session.stop() if session is not None else None
                await websocket.send_text(json.dumps({"type": "summary", "summary": summary}))
                await websocket.close()
                return

            if session is None:
                try:
                    session = _start_session({})
                except ConfigError as e:
                    await _reject(websocket, e)
                    return

            if kind == "image":
                frame_bgr = _decode_image(payload.get("image") or "")
                if frame_bgr is None:
                    continue
                try:
                    timestamp_ms = float(payload["timestamp_ms"])
                except (KeyError, TypeError, ValueError):
                    timestamp_ms = math.nan
                if not math.isfinite(timestamp_ms):
                    logger.warning("live: skipping image with bad timestamp_ms: %r", payload.get("timestamp_ms"))
                    continue
                if session.viewport is None:
                    h, w = frame_bgr.shape[:2]
                    session.set_viewport(Viewport(w, h, w, h, bool(payload.get("mirrored", False))))
                if pose is None:
                    pose = create_pose_detector()
                frame = await asyncio.get_event_loop().run_in_executor(
                    _LIVE_EXECUTOR, process_frame, frame_bgr, pose, timestamp_ms,
                )
            else:
                try:
                    frame = Frame.from_payload(payload)
                except ValueError as e:
                    logger.warning("live: skipping bad frame: %s", e)
                    continue

            result = session.process(frame)
            await websocket.send_text(json.dumps({"type": "result", **result.as_dict()}))
    except WebSocketDisconnect:
        if session is not None:
            logger.info("live: client disconnected (frames=%s, rep_count=%s)", session.frames, session.rep_count)
            session.stop()
        return


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("web_app:app", host="0.0.0.0", port=8000, reload=True)
