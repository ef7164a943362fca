"""Clients for the external PII detection service.

Two backends share one interface: Google Gemini over its REST API (the
hosted default) and a local Ollama vision model. Both send the image as
base64 and ask for a JSON array of ``{label, confidence, box_2d}`` items.
Any transport failure, non-2xx status or malformed payload raises
:class:`~guardvision.errors.DetectionServiceError`; a partially valid list is
never returned.
"""

from __future__ import annotations

import base64
import io
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import orjson
import requests
from PIL import Image
from pydantic import ValidationError

from .errors import DetectionServiceError
from .logging import get_logger
from .models import RawDetection
from .prompts import gemini_response_schema, json_response_schema, load_prompt
from .settings import Settings

logger = get_logger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*([\s\S]*?)\s*```$")


def encode_image(img: Image.Image) -> Dict[str, str]:
    """Encode an image as base64 PNG for inline transport."""
    if img.mode not in ("RGB", "RGBA", "L", "LA"):
        img = img.convert("RGBA" if "transparency" in img.info else "RGB")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return {
        "mime_type": "image/png",
        "data": base64.b64encode(buf.getvalue()).decode("ascii"),
    }


def parse_detections(text: str) -> List[RawDetection]:
    """Parse the model's JSON text into validated detections.

    Raises
    ------
    DetectionServiceError
        If the text is not a JSON array or any item breaks the contract.
    """
    if not text or not text.strip():
        raise DetectionServiceError("Empty response from detection service")
    body = text.strip()
    m = _FENCE_RE.match(body)
    if m:
        body = m.group(1)
    try:
        data = orjson.loads(body)
    except orjson.JSONDecodeError as exc:
        raise DetectionServiceError("Detection response is not valid JSON") from exc
    if not isinstance(data, list):
        raise DetectionServiceError("Detection response must be a JSON array")
    try:
        return [RawDetection.model_validate(item) for item in data]
    except ValidationError as exc:
        raise DetectionServiceError(
            f"Malformed detection item: {exc.errors()[0].get('msg', 'invalid')}"
        ) from exc


class DetectionClient:
    """Base interface: turn an image into raw detections."""

    retries: int = 0
    backoff: float = 1.5

    def _request(self, image: Dict[str, str]) -> str:
        """Send one request and return the model's JSON text. Implement in subclasses."""
        raise NotImplementedError

    def _post(self, url: str, payload: Dict[str, Any], **kwargs: Any) -> Dict[str, Any]:
        last_exc: Optional[Exception] = None
        for attempt in range(self.retries + 1):
            try:
                r = requests.post(url, json=payload, **kwargs)
                r.raise_for_status()
                return r.json()
            except (requests.RequestException, ValueError) as e:
                last_exc = e
                if attempt < self.retries:
                    time.sleep(self.backoff * (attempt + 1))
        raise DetectionServiceError(f"Detection service request failed: {last_exc}") from last_exc

    def detect(self, img: Image.Image) -> List[RawDetection]:
        start = time.perf_counter()
        text = self._request(encode_image(img))
        items = parse_detections(text)
        logger.info(
            "detections received",
            {
                "backend": type(self).__name__,
                "count": len(items),
                "duration": round(time.perf_counter() - start, 3),
            },
        )
        return items


@dataclass
class GeminiDetector(DetectionClient):
    api_key: Optional[str] = None
    model: str = "gemini-3-pro-preview"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout: int = 120
    retries: int = 0
    backoff: float = 1.5
    prompt: Optional[str] = None

    def _request(self, image: Dict[str, str]) -> str:
        if not self.api_key:
            raise DetectionServiceError("Gemini API key is not configured")
        url = f"{self.base_url.rstrip('/')}/models/{self.model}:generateContent"
        payload: Dict[str, Any] = {
            "contents": [
                {
                    "parts": [
                        {"inline_data": image},
                        {"text": self.prompt or load_prompt()},
                    ]
                }
            ],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": gemini_response_schema(),
            },
        }
        data = self._post(
            url,
            payload,
            headers={"x-goog-api-key": self.api_key},
            timeout=self.timeout,
        )
        try:
            parts = data["candidates"][0]["content"]["parts"]
            return "".join(p.get("text", "") for p in parts)
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise DetectionServiceError("No response from detection model") from exc


@dataclass
class OllamaDetector(DetectionClient):
    url: str = "http://localhost:11434/api/generate"
    model: str = "qwen2.5vl:7b"
    timeout: int = 120
    retries: int = 0
    backoff: float = 1.5
    prompt: Optional[str] = None

    def _request(self, image: Dict[str, str]) -> str:
        payload: Dict[str, Any] = {
            "model": self.model,
            "prompt": self.prompt or load_prompt(),
            "images": [image["data"]],
            "format": json_response_schema(),
            "stream": False,
            "options": {"temperature": 0},
        }
        data = self._post(self.url, payload, timeout=self.timeout)
        response = data.get("response") if isinstance(data, dict) else None
        if not isinstance(response, str):
            raise DetectionServiceError("No response from detection model")
        return response


def build_detector(settings: Settings) -> DetectionClient:
    """Instantiate the backend selected by ``settings.detector``."""
    prompt = load_prompt(settings.prompt_path)
    if settings.detector == "ollama":
        return OllamaDetector(
            url=settings.ollama_url,
            model=settings.ollama_model,
            timeout=settings.detect_timeout,
            retries=settings.detect_retries,
            prompt=prompt,
        )
    if settings.detector == "gemini":
        return GeminiDetector(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            base_url=settings.gemini_url,
            timeout=settings.detect_timeout,
            retries=settings.detect_retries,
            prompt=prompt,
        )
    raise ValueError(f"Unknown detector backend: {settings.detector}")


__all__ = [
    "DetectionClient",
    "GeminiDetector",
    "OllamaDetector",
    "build_detector",
    "encode_image",
    "parse_detections",
]
