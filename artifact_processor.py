"""Artifact byte handling: image inspection, inline previews, NFC documents and bundles"""

import base64
import json
import logging
import time
import zipfile
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, Optional, Tuple
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

import requests
from PIL import Image, ImageOps, UnidentifiedImageError

from envelopes import unwrap_data_envelope

logger = logging.getLogger("ArtifactProcessor")

CACHE_BUST_PARAM = "_t"
SUPPORTED_IMAGE_TYPES = ("image/png", "image/jpeg", "image/jpg", "image/webp", "image/gif")

# Simple in-memory cache for processed previews
_preview_cache: Dict[str, "EncodedImage"] = {}


def fetch_plain_bytes(url: str, timeout: float = 30) -> bytes:
    """Fetch a URL the way an image element would: no credentials"""
    response = requests.get(url, timeout=timeout)
    response.raise_for_status()
    return response.content


def inspect_image(image_bytes: bytes) -> Dict[str, Any]:
    """Decode image bytes and return width, height, format.

    Raises:
        ValueError: If the bytes are not a decodable image
    """
    if not image_bytes:
        raise ValueError("Empty image payload")
    try:
        with Image.open(BytesIO(image_bytes)) as img:
            img.verify()
        # verify() leaves the image unusable, reopen for the size
        with Image.open(BytesIO(image_bytes)) as img:
            return {"width": img.width, "height": img.height, "format": img.format}
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        raise ValueError(f"Not a decodable image: {e}")


def mime_type_for(image_format: Optional[str]) -> str:
    if not image_format:
        return "application/octet-stream"
    return Image.MIME.get(image_format.upper(), f"image/{image_format.lower()}")


def add_cache_buster(url: str, now_ms: Optional[int] = None) -> str:
    """Append (or replace) the ``_t`` query parameter so the URL is refetched"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    parts = urlsplit(url)
    query = [(key, value) for key, value in parse_qsl(parts.query, keep_blank_values=True) if key != CACHE_BUST_PARAM]
    query.append((CACHE_BUST_PARAM, str(now_ms)))
    return urlunsplit((parts.scheme, parts.netloc, parts.path, urlencode(query), parts.fragment))


def parse_nfc_document(content: bytes) -> Dict[str, Any]:
    """Parse an NFC JSON payload, unwrapping an optional ``data`` envelope"""
    document = json.loads(content.decode("utf-8"))
    document = unwrap_data_envelope(document)
    if not isinstance(document, dict):
        raise ValueError("NFC payload is not a JSON object")
    return document


@dataclass(frozen=True)
class EncodedImage:
    """Encoded preview with metrics"""
    b64: str  # Base64 string (without data URI prefix)
    mime_type: str
    size_px: Tuple[int, int]
    bytes_len: int
    b64_chars: int
    raw_bytes: bytes  # For FastMCP.Image


def get_cache_key(artifact_id: str, max_dim: int, quality: int) -> str:
    return f"{artifact_id}:{max_dim}:webp:{quality}"


def _cache_preview(cache_key: str, encoded: EncodedImage):
    """Cache processed preview (keep last 100 entries)"""
    if len(_preview_cache) > 100:
        _preview_cache.pop(next(iter(_preview_cache)))
    _preview_cache[cache_key] = encoded


def encode_preview(
    image_bytes: bytes,
    *,
    max_dim: int = 512,
    max_b64_chars: int = 100_000,
    quality: int = 80,
    cache_key: Optional[str] = None,
) -> EncodedImage:
    """Downscale and re-encode an artifact image as WebP within a base64 budget.

    QR codes and barcodes are high-contrast line art, so the ladder drops
    quality before it drops resolution to keep them scannable.

    Raises:
        ValueError: If the image exceeds the budget at every step
    """
    if cache_key and cache_key in _preview_cache:
        logger.debug(f"Cache hit for {cache_key}")
        return _preview_cache[cache_key]

    with Image.open(BytesIO(image_bytes)) as loaded:
        im = ImageOps.exif_transpose(loaded)
        if im.mode not in ("RGB", "RGBA", "L", "LA"):
            im = im.convert("RGB")
        src_w, src_h = im.size

        prefix_len = len("data:image/webp;base64,")
        for target in (max_dim, 384, 256):
            w, h = im.size
            if max(w, h) > target:
                scale = target / max(w, h)
                # Nearest keeps module edges sharp
                resized = im.resize((max(1, int(w * scale)), max(1, int(h * scale))), Image.Resampling.NEAREST)
            else:
                resized = im
            for q in (quality, 60, 40):
                buf = BytesIO()
                resized.save(buf, format="WEBP", quality=q, method=5)
                encoded = buf.getvalue()
                b64_string = base64.b64encode(encoded).decode("ascii")
                if len(b64_string) + prefix_len <= max_b64_chars:
                    result = EncodedImage(
                        b64=b64_string,
                        mime_type="image/webp",
                        size_px=resized.size,
                        bytes_len=len(encoded),
                        b64_chars=len(b64_string),
                        raw_bytes=encoded,
                    )
                    logger.info(
                        f"preview encoding: src={len(image_bytes)}B src_dims={src_w}x{src_h} "
                        f"preview_dims={resized.size[0]}x{resized.size[1]} quality={q} b64_chars={len(b64_string)}"
                    )
                    if cache_key:
                        _cache_preview(cache_key, result)
                    return result

    raise ValueError(f"Image exceeds base64 budget of {max_b64_chars} chars even at 256px, quality=40")


def artifact_filename(kind: str, tag_id: str, extension: str, now_ms: Optional[int] = None) -> str:
    """Timestamped download name, e.g. ``qr_ASSET555_1754296433008.png``"""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{kind}_{tag_id}_{now_ms}.{extension}"


def write_bundle(files: Dict[str, bytes], destination: Path) -> Path:
    """Write files into a ZIP archive at ``destination``"""
    if not files:
        raise ValueError("No artifacts available to export")
    destination = Path(destination)
    destination.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for name, content in files.items():
            archive.writestr(name, content)
    logger.info(f"Wrote {len(files)} artifacts to {destination}")
    return destination
