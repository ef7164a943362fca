"""Detection prompt and response schemas sent to the vision model."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

DETECTION_PROMPT = """
Analyze this image and detect all instances of Personally Identifiable Information (PII) or sensitive content.
Look for:
- Faces
- Names
- Phone numbers
- Email addresses
- Physical addresses
- Credit card numbers
- Driver's licenses or ID cards
- Signatures
- Confidential stamps or markings
- Passwords or sensitive text

Return a JSON array of objects. Each object must contain:
- "label": A short descriptive name for the detected PII (e.g., "Face", "Credit Card", "Phone Number").
- "confidence": A float between 0 and 1.
- "box_2d": An array [ymin, xmin, ymax, xmax] normalized from 0 to 1000.

Be precise with the bounding boxes.
""".strip()


def gemini_response_schema() -> Dict[str, Any]:
    """``responseSchema`` in the Gemini (OpenAPI subset) dialect."""
    return {
        "type": "ARRAY",
        "items": {
            "type": "OBJECT",
            "properties": {
                "label": {"type": "STRING"},
                "confidence": {"type": "NUMBER"},
                "box_2d": {
                    "type": "ARRAY",
                    "items": {"type": "NUMBER"},
                    "minItems": 4,
                    "maxItems": 4,
                },
            },
            "required": ["label", "confidence", "box_2d"],
        },
    }


def json_response_schema() -> Dict[str, Any]:
    """Same contract as a plain JSON Schema (Ollama ``format``)."""
    return {
        "type": "array",
        "items": {
            "type": "object",
            "properties": {
                "label": {"type": "string"},
                "confidence": {"type": "number"},
                "box_2d": {
                    "type": "array",
                    "items": {"type": "number"},
                    "minItems": 4,
                    "maxItems": 4,
                },
            },
            "required": ["label", "confidence", "box_2d"],
        },
    }


@lru_cache(maxsize=16)
def _read_text_cached(path: str) -> str:
    return Path(path).read_text(encoding="utf-8")


def load_prompt(explicit_path: Optional[str] = None) -> str:
    """Return the prompt at ``explicit_path`` if readable, else the built-in one."""

    if explicit_path:
        path_obj = Path(explicit_path)
        if path_obj.is_file():
            text = _read_text_cached(str(path_obj.resolve())).strip()
            if text:
                return text
    return DETECTION_PROMPT


__all__ = [
    "DETECTION_PROMPT",
    "gemini_response_schema",
    "json_response_schema",
    "load_prompt",
]
