import io
from typing import Iterable, List, Optional

from PIL import Image

from guardvision.models import RawDetection


def make_image(width: int, height: int) -> Image.Image:
    """Deterministic RGB test pattern with distinct neighbouring pixels."""
    img = Image.new("RGB", (width, height))
    img.putdata(
        [
            ((x * 7) % 256, (y * 5) % 256, (x + y) % 256)
            for y in range(height)
            for x in range(width)
        ]
    )
    return img


def png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def raw(label: str, box: Iterable[float], confidence: float = 0.9) -> RawDetection:
    return RawDetection(label=label, confidence=confidence, box_2d=list(box))


class FakeDetector:
    def __init__(self, items: Optional[List[RawDetection]] = None, exc: Optional[Exception] = None):
        self.items = items or []
        self.exc = exc
        self.calls = 0

    def detect(self, img):
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return list(self.items)
