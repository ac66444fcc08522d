# ABOUTME: Cover image transform that keeps cover.jpg under a byte budget.
# ABOUTME: Re-encodes oversized covers as JPEG at progressively smaller sizes with Pillow.

import logging
from io import BytesIO

from PIL import Image

from shelfwright.config import DEFAULT_COVER_BUDGET

logger = logging.getLogger(__name__)

_INITIAL_SCALE = 0.8
_SCALE_STEP = 0.85
_MAX_ATTEMPTS = 5
_MIN_DIMENSION = 200
_JPEG_QUALITY = 85


def _encode_scaled(img: Image.Image, scale: float) -> tuple[bytes, tuple[int, int]]:
    """Resize by a scale factor (never below the minimum edge) and encode as JPEG."""
    width = max(int(img.width * scale), _MIN_DIMENSION)
    height = max(int(img.height * scale), _MIN_DIMENSION)
    resized = img.resize((width, height), Image.Resampling.LANCZOS)
    output = BytesIO()
    resized.save(output, format="JPEG", quality=_JPEG_QUALITY, optimize=True)
    return output.getvalue(), (width, height)


def fit_cover_to_budget(data: bytes, budget: int = DEFAULT_COVER_BUDGET) -> bytes:
    """Return cover bytes at or under `budget`, re-encoding when needed.

    Covers already within budget are returned unchanged. Otherwise the image
    is scaled to 80% and then by a further 15% per attempt until the JPEG
    fits or the minimum edge length is reached; the last attempt is returned.

    Raises:
        OSError: If the image data cannot be decoded (PIL.UnidentifiedImageError
            is an OSError).
    """
    if len(data) <= budget:
        return data

    logger.info("Cover image is %dKB, resizing to fit %dKB", len(data) // 1024, budget // 1024)

    with Image.open(BytesIO(data)) as source:
        img = source.convert("RGB") if source.mode != "RGB" else source.copy()

    scale = _INITIAL_SCALE
    for _attempt in range(_MAX_ATTEMPTS):
        if img.width * scale < _MIN_DIMENSION or img.height * scale < _MIN_DIMENSION:
            break
        encoded, size = _encode_scaled(img, scale)
        if len(encoded) <= budget:
            logger.info(
                "Resized cover from %dKB to %dKB (%dx%d -> %dx%d)",
                len(data) // 1024, len(encoded) // 1024,
                img.width, img.height, *size,
            )
            return encoded
        scale *= _SCALE_STEP

    encoded, size = _encode_scaled(img, scale)
    logger.info(
        "Resized cover from %dKB to %dKB (%dx%d -> %dx%d)",
        len(data) // 1024, len(encoded) // 1024, img.width, img.height, *size,
    )
    return encoded
