"""Image acquisition: live camera stills (OpenCV) and uploaded files (Pillow), as EncodedImage."""

from __future__ import annotations

import asyncio
import base64
import binascii
import io
import itertools
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any, AsyncIterator, Protocol

import cv2
from PIL import Image, UnidentifiedImageError

from landmark_guide.exceptions import DeviceUnavailable, InvalidImage
from landmark_guide.models import EncodedImage

MAX_UPLOAD_SIDE = 10000
# Larger images are downscaled before being sent to the backend.
MAX_SEND_SIDE = 2048
JPEG_QUALITY = 90

_stream_ids = itertools.count(1)


@dataclass
class StreamHandle:
    """An open device stream; only the source that created it may release it."""

    stream_id: int
    device: Any
    released: bool = False


class ImageSource(Protocol):
    async def acquire_stream(self) -> StreamHandle:
        ...

    async def capture_still(self, handle: StreamHandle) -> EncodedImage:
        ...

    async def release_stream(self, handle: StreamHandle) -> None:
        ...


class OpenCVCameraSource:
    """Camera source backed by cv2.VideoCapture; blocking calls run in a worker thread."""

    def __init__(self, camera_index: int = 0) -> None:
        self._camera_index = camera_index

    def _open(self) -> Any:
        cap = cv2.VideoCapture(self._camera_index)
        if not cap or not cap.isOpened():
            if cap is not None:
                cap.release()
            raise DeviceUnavailable(f"Cannot open camera {self._camera_index}")
        return cap

    async def acquire_stream(self) -> StreamHandle:
        cap = await asyncio.to_thread(self._open)
        return StreamHandle(stream_id=next(_stream_ids), device=cap)

    def _grab(self, handle: StreamHandle) -> bytes:
        if handle.released:
            raise DeviceUnavailable("Camera stream already released")
        ok, frame = handle.device.read()
        if not ok or frame is None:
            raise DeviceUnavailable("Camera returned no frame")
        ok, buf = cv2.imencode(".jpg", frame, [int(cv2.IMWRITE_JPEG_QUALITY), JPEG_QUALITY])
        if not ok:
            raise DeviceUnavailable("Could not encode camera frame")
        return buf.tobytes()

    async def capture_still(self, handle: StreamHandle) -> EncodedImage:
        data = await asyncio.to_thread(self._grab, handle)
        return EncodedImage(data=data, mime_type="image/jpeg", source="camera")

    async def release_stream(self, handle: StreamHandle) -> None:
        if handle.released:
            return
        handle.released = True
        await asyncio.to_thread(handle.device.release)


@asynccontextmanager
async def camera_stream(source: ImageSource) -> AsyncIterator[StreamHandle]:
    """Acquire a stream and release it on every exit path."""
    handle = await source.acquire_stream()
    try:
        yield handle
    finally:
        await source.release_stream(handle)


def _read_upload(data: bytes | str) -> bytes:
    if isinstance(data, bytes):
        return data
    ref = data.strip()
    if ref.startswith("data:"):
        # data:image/xxx;base64,<data>
        _, _, ref = ref.partition(",")
    try:
        return base64.b64decode(ref, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImage("Upload is neither bytes nor base64 data") from e


def decode_uploaded_file(data: bytes | str) -> EncodedImage:
    """
    Decode an uploaded file (raw bytes, base64 or data URL) into a JPEG still.
    Raises InvalidImage for anything Pillow cannot open or for absurd dimensions.
    """
    raw = _read_upload(data)
    if not raw:
        raise InvalidImage("Upload is empty")
    try:
        with Image.open(io.BytesIO(raw)) as img:
            img.verify()
        with Image.open(io.BytesIO(raw)) as img:
            if img.width == 0 or img.height == 0:
                raise InvalidImage("Image has invalid dimensions")
            if img.width > MAX_UPLOAD_SIDE or img.height > MAX_UPLOAD_SIDE:
                raise InvalidImage(f"Image dimensions too large (max {MAX_UPLOAD_SIDE}px)")
            rgb = img.convert("RGB")
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise InvalidImage(f"Image validation failed: {e}") from e
    rgb.thumbnail((MAX_SEND_SIDE, MAX_SEND_SIDE))
    out = io.BytesIO()
    rgb.save(out, format="JPEG", quality=JPEG_QUALITY)
    return EncodedImage(data=out.getvalue(), mime_type="image/jpeg", source="upload")
