"""
FastAPI application entry point.

Routes:
  POST   /api/coordinates
  GET    /api/coordinates
  DELETE /api/coordinates

  POST   /api/image
  GET    /api/images
  DELETE /api/images

  POST   /api/banner_data
  GET    /api/banner_data
  GET    /api/banner_data/{image_url}

  DELETE /api/all

  WS     /ws

Static:
  /  → public/ (when present)
"""
from __future__ import annotations

import asyncio
import logging
import math
from contextlib import asynccontextmanager
from typing import Any, Optional, TypeVar

from fastapi import (
    APIRouter, Depends, FastAPI, HTTPException, Request, WebSocket,
    WebSocketDisconnect, status,
)
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import Field, StrictStr, ValidationError

from relay.broadcast.channel import CLOSED, Broadcaster
from relay.config import (
    CORS_ORIGINS, EVENT_COORDINATE_HISTORY, EVENT_COORDINATES_CLEARED,
    EVENT_IMAGE_HISTORY, EVENT_IMAGES_CLEARED, EVENT_NEW_COORDINATE,
    EVENT_NEW_IMAGE, HOST, PING_INTERVAL_S, PORT, STATIC_DIR,
)
from relay.models import BannerRecord, CoordinateRecord, ImageRecord, WireModel
from relay.storage import HistoryStore

log = logging.getLogger("uvicorn.error")

router = APIRouter()


# ── Dependencies ──────────────────────────────────────────────────────────────

def get_store(request: Request) -> HistoryStore:
    return request.app.state.store


def get_broadcaster(request: Request) -> Broadcaster:
    return request.app.state.broadcaster


async def read_json_object(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(400, "Request body must be valid JSON")
    if not isinstance(body, dict):
        raise HTTPException(400, "Request body must be a JSON object")
    return body


M = TypeVar("M", bound=WireModel)


def validate_body(
    model: type[M],
    body: dict[str, Any],
    message: str,
    field_messages: Optional[dict[str, str]] = None,
) -> M:
    """Validate a request body, turning the first failure into a 400."""
    try:
        return model.model_validate(body)
    except ValidationError as exc:
        loc = exc.errors()[0]["loc"]
        field = loc[0] if loc else None
        raise HTTPException(400, (field_messages or {}).get(field, message))


def _is_number(value: Any) -> bool:
    # bool is an int subclass; JSON true/false are not coordinates
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        # int too large for a float
        return False


# ── Coordinates ───────────────────────────────────────────────────────────────

class CoordinatesBody(WireModel):
    coordinates: list[Any] = Field(min_length=3)  # [distance, x, z, photoCapture?]


@router.post("/api/coordinates")
async def post_coordinates(
    body: dict = Depends(read_json_object),
    store: HistoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    reading = validate_body(
        CoordinatesBody, body, "Invalid coordinates format. Expected [distance, x, z, photoCapture]",
    )
    coordinates = reading.coordinates

    distance, x, z = coordinates[:3]
    photo_capture = coordinates[3] if len(coordinates) > 3 else 0

    if not (_is_number(distance) and _is_number(x) and _is_number(z)):
        raise HTTPException(400, "All coordinate values must be numbers")
    if isinstance(photo_capture, bool) or photo_capture not in (0, 1):
        raise HTTPException(400, "Photo capture value must be 0 or 1")

    log.info("Received coordinates: distance=%s, x=%s, z=%s, photo=%s", distance, x, z, photo_capture)

    record = store.add_coordinate(
        CoordinateRecord(distance=distance, x=x, z=z, photo_capture=int(photo_capture))
    )
    broadcaster.broadcast(EVENT_NEW_COORDINATE, record.dump())
    return {"status": "success", "message": "Coordinates received"}


@router.get("/api/coordinates")
async def list_coordinates(store: HistoryStore = Depends(get_store)):
    return store.snapshot_coordinates()


@router.delete("/api/coordinates")
async def clear_coordinates(
    store: HistoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    store.clear_coordinates()
    broadcaster.broadcast(EVENT_COORDINATES_CLEARED)
    log.info("Coordinates cleared")
    return {"status": "success", "message": "Coordinates cleared"}


# ── Images ────────────────────────────────────────────────────────────────────

class ImageBody(WireModel):
    image_url: StrictStr = Field(min_length=1)
    metadata: Optional[dict[str, Any]] = None


@router.post("/api/image")
async def post_image(
    body: dict = Depends(read_json_object),
    store: HistoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    image = validate_body(
        ImageBody, body, "No image URL provided",
        {"metadata": "Image metadata must be an object"},
    )

    log.info("Received image URL: %s", image.image_url)

    record = store.add_image(ImageRecord(url=image.image_url, metadata=image.metadata or {}))
    broadcaster.broadcast(EVENT_NEW_IMAGE, record.dump())
    broadcaster.broadcast(EVENT_IMAGE_HISTORY, store.snapshot_images())
    return {"status": "success", "message": "Image URL received"}


@router.get("/api/images")
async def list_images(store: HistoryStore = Depends(get_store)):
    return store.snapshot_images()


@router.delete("/api/images")
async def clear_images(
    store: HistoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    store.clear_images()
    broadcaster.broadcast(EVENT_IMAGES_CLEARED)
    log.info("Images cleared")
    return {"status": "success", "message": "Images cleared"}


# ── Banner data ───────────────────────────────────────────────────────────────

class BannerBody(WireModel):
    image_url: StrictStr = Field(min_length=1)
    brand: StrictStr = Field(min_length=1)
    position: StrictStr = Field(min_length=1)
    type: StrictStr = Field(min_length=1)


@router.post("/api/banner_data", status_code=status.HTTP_201_CREATED)
async def post_banner_data(
    body: dict = Depends(read_json_object),
    store: HistoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    banner = validate_body(BannerBody, body, "Missing required fields")

    try:
        record = BannerRecord(
            image_url=banner.image_url,
            brand=banner.brand,
            position=banner.position,
            type=banner.type,
        )
        log.info("Received banner data: %s", record.dump())

        # Banner updates reach listeners only through the image history
        if store.attach_banner(record):
            broadcaster.broadcast(EVENT_IMAGE_HISTORY, store.snapshot_images())
    except Exception:
        log.exception("Error processing banner data")
        raise HTTPException(500, "Internal server error")

    return {"message": "Banner data received", "data": record.dump()}


@router.get("/api/banner_data")
async def list_banner_data(store: HistoryStore = Depends(get_store)):
    return store.snapshot_banners()


@router.get("/api/banner_data/{image_url:path}")
async def get_banner_data(image_url: str, store: HistoryStore = Depends(get_store)):
    record = store.find_banner(image_url)
    if record is None:
        raise HTTPException(404, "No banner data found for this image")
    return record.dump()


# ── Everything ────────────────────────────────────────────────────────────────

@router.delete("/api/all")
async def clear_all(
    store: HistoryStore = Depends(get_store),
    broadcaster: Broadcaster = Depends(get_broadcaster),
):
    log.info("Clearing all history %s", store.counts())
    store.clear_all()
    broadcaster.broadcast(EVENT_COORDINATES_CLEARED)
    broadcaster.broadcast(EVENT_IMAGES_CLEARED)
    return {"status": "success", "message": "All data cleared"}


# ── WebSocket push channel ────────────────────────────────────────────────────

async def _until_disconnect(websocket: WebSocket) -> None:
    """Drain (and ignore) client frames until the peer goes away."""
    while True:
        message = await websocket.receive()
        if message["type"] == "websocket.disconnect":
            return


def reap(task: asyncio.Future) -> None:
    """Cancel a helper task, collecting its error if it already failed."""
    if not task.done():
        task.cancel()
        return
    if not task.cancelled() and task.exception() is not None:
        log.warning("Disconnect watcher failed: %r", task.exception())


@router.websocket("/ws")
async def ws_listen(websocket: WebSocket):
    store: HistoryStore = websocket.app.state.store
    broadcaster: Broadcaster = websocket.app.state.broadcaster

    await websocket.accept()

    # Subscribe and seed without yielding, so no live event slips in between
    q = broadcaster.subscribe()
    coordinates = store.snapshot_coordinates()
    if coordinates:
        broadcaster.send(q, EVENT_COORDINATE_HISTORY, coordinates)
    images = store.snapshot_images()
    if images:
        broadcaster.send(q, EVENT_IMAGE_HISTORY, images)

    log.info("Client connected (%d listening)", broadcaster.subscriber_count())
    watcher = asyncio.ensure_future(_until_disconnect(websocket))
    try:
        while broadcaster.is_subscribed(q):
            getter = asyncio.ensure_future(q.get())
            done, _ = await asyncio.wait(
                {getter, watcher}, timeout=PING_INTERVAL_S,
                return_when=asyncio.FIRST_COMPLETED,
            )
            if getter not in done:
                getter.cancel()
            if watcher in done:
                break
            if getter not in done:
                await websocket.send_json({"type": "ping"})
                continue
            msg = getter.result()
            if msg is CLOSED:
                await websocket.close(code=status.WS_1001_GOING_AWAY)
                break
            await websocket.send_json(msg)
        else:
            # Dropped by the broadcaster for falling behind
            await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER)
    except WebSocketDisconnect:
        pass
    except Exception:
        log.exception("WebSocket error")
    finally:
        reap(watcher)
        broadcaster.unsubscribe(q)
        log.info("Client disconnected (%d listening)", broadcaster.subscriber_count())


# ── App ───────────────────────────────────────────────────────────────────────

def create_app(
    store: Optional[HistoryStore] = None,
    broadcaster: Optional[Broadcaster] = None,
) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.store = store if store is not None else HistoryStore()
        app.state.broadcaster = broadcaster if broadcaster is not None else Broadcaster()
        yield
        app.state.broadcaster.close()
        app.state.store.clear_all()

    app = FastAPI(title="SensorRelay", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)

    # Static last so it never shadows /api or /ws
    if STATIC_DIR.is_dir():
        app.mount("/", StaticFiles(directory=str(STATIC_DIR), html=True), name="public")

    return app


app = create_app()


def run() -> None:
    import uvicorn

    logging.basicConfig(level=logging.INFO)
    uvicorn.run(app, host=HOST, port=PORT)


if __name__ == "__main__":
    run()
