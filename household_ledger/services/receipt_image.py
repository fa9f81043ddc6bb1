"""
Receipt Image Checks

Runs before a receipt photo is sent to the AI:
1. Format and size limits from AppSettings
2. Cheap quality heuristics (resolution, exposure)
3. Downscaling oversized photos so the request stays small

DESIGN DECISION: Simple PIL heuristics rather than a vision model. They
are instant, free and good enough to catch the usual bad photo (too small,
too dark, washed out) before spending an AI call on it.
"""

from io import BytesIO
from typing import NamedTuple, Optional

from PIL import Image, UnidentifiedImageError

from household_ledger.config import get_settings


MIN_DIMENSION = 300
MAX_DIMENSION = 1600

_MIME_TYPES = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "WEBP": "image/webp",
}


class ReceiptImage(NamedTuple):
    usable: bool
    image_bytes: bytes
    mime_type: str
    issues: list[str]


class ReceiptImageChecker:
    """Validates and normalizes receipt photos."""

    def __init__(
        self,
        supported_formats: Optional[list[str]] = None,
        max_size_bytes: Optional[int] = None,
    ):
        if supported_formats is None or max_size_bytes is None:
            app_settings = get_settings().app
            supported_formats = supported_formats or app_settings.supported_formats_list
            max_size_bytes = max_size_bytes or app_settings.max_upload_size_bytes
        self._formats = {fmt.lower() for fmt in supported_formats}
        if "jpg" in self._formats:
            self._formats.add("jpeg")
        self._max_size = max_size_bytes

    def _rejected(self, image_bytes: bytes, issue: str) -> ReceiptImage:
        return ReceiptImage(False, image_bytes, "application/octet-stream", [issue])

    def prepare(self, image_bytes: bytes) -> ReceiptImage:
        """
        Check a receipt photo and return the bytes to send.

        Unreadable, unsupported, oversized, tiny or very dark/bright photos
        are not usable; the issues say why in plain words.
        """
        if len(image_bytes) > self._max_size:
            return self._rejected(
                image_bytes,
                f"Image is larger than {self._max_size // (1024 * 1024)} MB",
            )

        try:
            img = Image.open(BytesIO(image_bytes))
            img.load()
        except (UnidentifiedImageError, OSError):
            return self._rejected(image_bytes, "File is not a readable image")

        fmt = (img.format or "").upper()
        if fmt.lower() not in self._formats or fmt not in _MIME_TYPES:
            return self._rejected(image_bytes, f"Unsupported image format: {fmt or 'unknown'}")

        issues = []
        width, height = img.size
        if min(width, height) < MIN_DIMENSION:
            issues.append(
                f"Image resolution too low (minimum {MIN_DIMENSION}px on smallest side)"
            )

        histogram = img.convert("L").histogram()
        total_pixels = sum(histogram)
        if sum(histogram[:50]) / total_pixels > 0.7:
            issues.append("Image is very dark - please take photo in better lighting")
        if sum(histogram[200:]) / total_pixels > 0.7:
            issues.append("Image is overexposed - please reduce lighting or angle")

        if issues:
            return ReceiptImage(False, image_bytes, _MIME_TYPES[fmt], issues)

        if max(width, height) <= MAX_DIMENSION:
            return ReceiptImage(True, image_bytes, _MIME_TYPES[fmt], [])

        # Downscale and re-encode as JPEG
        img.thumbnail((MAX_DIMENSION, MAX_DIMENSION))
        buffer = BytesIO()
        img.convert("RGB").save(buffer, format="JPEG", quality=90)
        return ReceiptImage(True, buffer.getvalue(), "image/jpeg", [])
