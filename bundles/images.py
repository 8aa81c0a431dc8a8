"""Marketplace image URL cleanup.

Amazon appends transformation parameters to image paths, e.g.

    .../images/I/61phUFMrvSL.jpg_BO30,255,255,255_UF900,850_SR1910,1000,0,C_QL100_.jpg
    .../images/I/01UwfHrld+L._TSa|size:1910,1000|format:(A,f,b,d,pi,pl,o)|...json

Those URLs do not resolve, so they are rewritten to the base image
(``https://m.media-amazon.com/images/I/61phUFMrvSL.jpg``).
"""
from __future__ import annotations

import logging
import re
from typing import Any
from urllib.parse import urlsplit

logger = logging.getLogger(__name__)

_TRANSFORM_MARKERS = (
    re.compile(r"\.(jpg|jpeg|png)_[A-Z]", re.IGNORECASE),
    re.compile(r"\._TSa", re.IGNORECASE),
)
_IMAGE_ID = re.compile(r"/images/I/([A-Za-z0-9+\-_%]+)[._]")
_IMAGE_EXT = re.compile(r"/images/I/[^.]+\.(jpg|jpeg|png)", re.IGNORECASE)


def _has_transformations(url: str) -> bool:
    return any(p.search(url) for p in _TRANSFORM_MARKERS) or url.endswith(".json")


def clean_amazon_image_url(url: str) -> str:
    if not _has_transformations(url):
        return url

    match = _IMAGE_ID.search(url)
    if not match:
        return url

    host = urlsplit(url).hostname
    if not host:
        return url

    ext_match = _IMAGE_EXT.search(url)
    ext = ext_match.group(1).lower() if ext_match else "jpg"
    cleaned = f"https://{host}/images/I/{match.group(1)}.{ext}"
    if cleaned != url:
        logger.debug("Cleaned Amazon image URL %s -> %s", url[:100], cleaned)
    return cleaned


def clean_image_url(url: Any, source: Any) -> str:
    """Return a usable image URL; never raises, falls back to the input."""
    if not isinstance(url, str):
        return ""
    if not url:
        return url

    source_value = getattr(source, "value", source)
    if source_value != "amazon":
        return url

    try:
        return clean_amazon_image_url(url)
    except Exception as exc:
        logger.warning("Failed to clean image URL %s: %s", url[:100], exc)
        return url
