"""Resolve scanned or typed references to canonical asset tags"""

import logging
import re

from errors import ValidationError

logger = logging.getLogger("ReferenceResolver")

# Stored artifact filenames look like qr_<TAG>_<epochMillis>.png
ARTIFACT_PATH_REGEX = re.compile(r"qr_([^_]+)_\d+\.png")
OBJECT_ID_REGEX = re.compile(r"^[a-fA-F0-9]{24}$")
ASSET_ID_REGEX = re.compile(r"^[a-zA-Z0-9_-]+$")
TAG_MARKER = "ASSET"


def resolve_reference(raw: str) -> str:
    """Extract the canonical asset tag from a scanned string.

    Rules are tried in order and the first match wins:
      1. an artifact path ``qr_<TAG>_<digits>.png`` anywhere in the string
      2. any string containing ``/``: the text after the last ``/``
      3. a string containing ``ASSET``: used unchanged
      4. anything else: used unchanged

    Never raises. Rejecting empty input is the caller's job.
    """
    match = ARTIFACT_PATH_REGEX.search(raw)
    if match:
        logger.debug("Extracted tag %s from artifact path", match.group(1))
        return match.group(1)

    if "/" in raw:
        tag = raw.rsplit("/", 1)[-1]
        logger.debug("Extracted tag %s from URL path", tag)
        return tag

    if TAG_MARKER in raw:
        return raw

    return raw


def is_object_id(value: str) -> bool:
    """True for 24-hex-digit backend identifiers"""
    return bool(OBJECT_ID_REGEX.match(value))


def validate_asset_id(value: str) -> str:
    """Check an identifier before it is sent to the API; returns it stripped"""
    if value is None or not value.strip():
        raise ValidationError("Asset ID is required")
    value = value.strip()
    if len(value) < 3:
        raise ValidationError("Asset ID must be at least 3 characters long")
    if not ASSET_ID_REGEX.match(value):
        raise ValidationError("Asset ID can only contain letters, numbers, hyphens, and underscores")
    return value
