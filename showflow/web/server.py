import asyncio
import json
import logging
from pathlib import Path
from typing import Any

from aiortc import RTCPeerConnection, RTCSessionDescription
from fastapi import FastAPI, File, HTTPException, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.responses import FileResponse, Response
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from showflow import event_bus
from showflow.bus import NOTICE_TOPIC, OUTPUT_STATUS_TOPIC, PROGRAM_TOPIC, STATE_TOPIC
from showflow.capture import CaptureConstraints, CaptureTarget, ScreenCaptureBackend
from showflow.config import config
from showflow.messages import Notice, OutputSnapshot, OutputStatus
from showflow.standby import StandbyDecodeError
from showflow.studio import Studio
from showflow.surface import create_surface_host
from showflow.video import _relay, create_peer_connection

logger = logging.getLogger(__name__)

FRONTEND_DIR = Path(__file__).resolve().parents[2] / "frontend"

app = FastAPI()
app.mount("/static", StaticFiles(directory=FRONTEND_DIR), name="static")

capture_backend = ScreenCaptureBackend(config.capture)
surface_host = create_surface_host(config)
studio = Studio(
    backend=capture_backend,
    host=surface_host,
    bus=event_bus,
    constraints=CaptureConstraints(cursor=config.capture.cursor, audio=config.capture.audio),
    poll_interval_s=config.output.poll_interval_s,
    standby_format=config.standby.encode_format,
    relay=_relay,
)

# Keep peer connections and in-flight acquisitions alive
_peer_connections: set[RTCPeerConnection] = set()
_pending_tasks: set[asyncio.Task[Any]] = set()
_control_clients: set[WebSocket] = set()


async def _broadcast(message: dict[str, Any]) -> None:
    for ws in list(_control_clients):
        try:
            await ws.send_json(message)
        except Exception as exc:
            logger.warning("Dropping control client: %s", exc)
            _control_clients.discard(ws)


async def _on_state(state: dict[str, Any]) -> None:
    await _broadcast(state)


async def _on_notice(notice: Notice) -> None:
    await _broadcast({"type": "notice", "level": notice.level.value, "message": notice.message})


async def _on_output_status(status: OutputStatus) -> None:
    await _broadcast({"type": "output_status", "status": status.value})


async def _on_program(snapshot: OutputSnapshot) -> None:
    message = snapshot.to_message()
    message["type"] = "program"
    await _broadcast(message)


_TOPIC_HANDLERS = {
    STATE_TOPIC: _on_state,
    NOTICE_TOPIC: _on_notice,
    OUTPUT_STATUS_TOPIC: _on_output_status,
    PROGRAM_TOPIC: _on_program,
}


async def _run_peer_connection(pc: RTCPeerConnection) -> None:
    """Close the peer connection once it fails or closes."""

    @pc.on("connectionstatechange")
    async def on_connectionstatechange() -> None:
        if pc.connectionState in ["closed", "failed"]:
            logger.info(f"Peer connection {pc.connectionState}, cleaning up")
            _peer_connections.discard(pc)
            await pc.close()


@app.on_event("startup")
async def on_startup() -> None:
    for topic, handler in _TOPIC_HANDLERS.items():
        await event_bus.subscribe(topic, handler)


@app.on_event("shutdown")
async def on_shutdown() -> None:
    for topic, handler in _TOPIC_HANDLERS.items():
        await event_bus.unsubscribe(topic, handler)
    studio.shutdown()
    for pc in list(_peer_connections):
        await pc.close()
    _peer_connections.clear()


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/")
async def index() -> FileResponse:
    return FileResponse(FRONTEND_DIR / "index.html")


@app.get("/api/config")
async def get_config() -> dict[str, Any]:
    """Получить конфигурацию для фронтенда"""
    return {
        "output": {
            "route": config.output.route,
            "heartbeat_interval_ms": int(config.output.heartbeat_timeout_s * 1000) // 3,
            "watermark": config.output.watermark,
        },
        "capture": {
            "cursor": config.capture.cursor,
            "audio": config.capture.audio,
            "framerate": config.capture.framerate,
        },
    }


@app.get("/api/state")
async def get_state() -> dict[str, Any]:
    return studio.describe()


@app.get("/api/capture/targets")
async def get_capture_targets() -> list[dict[str, str]]:
    return [target.model_dump() for target in capture_backend.list_targets()]


@app.get("/api/standby")
async def get_standby() -> Response:
    image = studio.standby.image
    if image is None:
        raise HTTPException(status_code=404, detail="No standby image")
    return Response(content=image.encoded, media_type=image.content_type)


@app.post("/api/standby")
async def upload_standby(file: UploadFile = File(...)) -> dict[str, Any]:
    data = await file.read()
    try:
        image = await studio.upload_standby(data, file.filename)
    except StandbyDecodeError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    width, height = image.size
    return {"width": width, "height": height, "content_type": image.content_type}


class Offer(BaseModel):
    sdp: str
    type: str
    source_id: str
    audio: bool = False


@app.post("/webrtc/offer")
async def webrtc_offer(offer: Offer) -> dict[str, Any]:
    source = studio.sources.get(offer.source_id)
    if source is None:
        raise HTTPException(status_code=404, detail="Unknown source")

    pc = await create_peer_connection(source, audio=offer.audio)

    # Store PC to keep it alive
    _peer_connections.add(pc)
    await _run_peer_connection(pc)

    remote_desc = RTCSessionDescription(sdp=offer.sdp, type=offer.type)
    await pc.setRemoteDescription(remote_desc)

    answer = await pc.createAnswer()
    await pc.setLocalDescription(answer)

    return {"sdp": pc.localDescription.sdp, "type": pc.localDescription.type}


async def _dispatch(msg: dict[str, Any]) -> None:
    msg_type = msg.get("type")
    if msg_type == "add_source":
        target = CaptureTarget(device=msg.get("device"), label=msg.get("label"))
        # Acquisition can sit in the picker for a while, other actions keep flowing
        task = asyncio.create_task(studio.add_source(target))
        _pending_tasks.add(task)
        task.add_done_callback(_pending_tasks.discard)

    elif msg_type == "remove_source":
        await studio.remove_source(str(msg.get("id")))

    elif msg_type == "select_preview":
        await studio.select_preview(str(msg.get("id")))

    elif msg_type == "take":
        await studio.take()

    elif msg_type == "cut":
        await studio.cut()

    elif msg_type == "open_output":
        await studio.connect_output()

    else:
        logger.warning("Unknown control message type %r", msg_type)


@app.websocket("/ws/control")
async def ws_control(ws: WebSocket) -> None:
    await ws.accept()
    _control_clients.add(ws)
    await ws.send_json(studio.describe())
    try:
        while True:
            msg_text = await ws.receive_text()
            try:
                msg = json.loads(msg_text)
            except ValueError:
                logger.warning("Malformed control message ignored")
                continue
            if not isinstance(msg, dict):
                logger.warning("Control message is not an object, ignored")
                continue
            await _dispatch(msg)

    except WebSocketDisconnect:
        pass
    finally:
        _control_clients.discard(ws)


@app.websocket("/ws/output/{token}")
async def ws_output(ws: WebSocket, token: str) -> None:
    await ws.accept()
    surface = surface_host.get(token)
    if surface is None:
        await ws.close(code=4404)
        return

    await surface.attach(ws)
    try:
        while True:
            msg_text = await ws.receive_text()
            try:
                msg = json.loads(msg_text)
            except ValueError:
                continue
            if not isinstance(msg, dict):
                continue
            if msg.get("type") == "heartbeat":
                surface.heartbeat()
            elif msg.get("type") == "bye":
                break

    except WebSocketDisconnect:
        pass
    finally:
        # A newer page may have taken the surface over, leave it alone then
        surface.detach(ws)
