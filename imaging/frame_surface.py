from __future__ import annotations

import base64
import io
from typing import Optional, Tuple

from PIL import Image


class SurfaceError(RuntimeError):
    pass


class FrameSurface:
    """Offscreen RGB surface that a video frame is drawn into before encoding.

    The surface takes the dimensions of whatever frame was drawn last, so the
    encoded still keeps the source's native resolution.
    """

    def __init__(self) -> None:
        self._canvas: Optional[Image.Image] = None

    @property
    def size(self) -> Tuple[int, int] | None:
        return self._canvas.size if self._canvas is not None else None

    def draw(self, frame: Image.Image) -> None:
        width, height = frame.size
        if width <= 0 or height <= 0:
            raise SurfaceError("Invalid frame dimensions")

        canvas = Image.new("RGB", (width, height))
        canvas.paste(frame.convert("RGB"), (0, 0))
        self._canvas = canvas

    def to_jpeg(self, quality: float = 0.9) -> bytes:
        """Encode the surface as JPEG. `quality` is a 0..1 factor."""
        if self._canvas is None:
            raise SurfaceError("Nothing has been drawn to the surface")
        if not 0.0 <= quality <= 1.0:
            raise SurfaceError(f"quality must be between 0 and 1 (got {quality})")

        buf = io.BytesIO()
        self._canvas.save(buf, format="JPEG", quality=int(round(quality * 100)))
        return buf.getvalue()

    def to_data_url(self, quality: float = 0.9) -> str:
        encoded = base64.b64encode(self.to_jpeg(quality)).decode("ascii")
        return f"data:image/jpeg;base64,{encoded}"
