from __future__ import annotations

import logging
import re
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from bundles.models import RawProduct, Source

logger = logging.getLogger(__name__)

_ASIN = re.compile(r"/(?:dp|gp/product)/([A-Z0-9]{10})")
_SNIPPET_PRICE = re.compile(r"\$(\d+(?:,\d{3})*(?:\.\d{2})?)")
_AMAZON_TITLE_SUFFIX = re.compile(r"\s*[-:]\s*Amazon\.com.*$", re.IGNORECASE)


def _first_str(*values: Any) -> Optional[str]:
    for value in values:
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def parse_price(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        return value if value.is_finite() and value > 0 else None
    if isinstance(value, (int, float)):
        return parse_price(Decimal(str(value)))
    if isinstance(value, str):
        cleaned = value.replace("$", "").replace(",", "").strip()
        if "-" in cleaned[1:]:
            # price range "12.99 - 24.99": lower bound
            parts = [p for p in cleaned.split("-") if p.strip()]
            return parse_price(parts[0]) if parts else None
        try:
            price = Decimal(cleaned)
        except InvalidOperation:
            return None
        return price if price.is_finite() and price > 0 else None
    return None


def extract_asin(url: str) -> Optional[str]:
    match = _ASIN.search(url or "")
    return match.group(1) if match else None


def normalize_google_amazon_item(item: dict[str, Any], associate_tag: str = "") -> RawProduct | None:
    """Maps one Google Custom Search hit on amazon.com to a RawProduct."""
    if not isinstance(item, dict):
        return None

    link = _first_str(item.get("link"))
    title = _first_str(item.get("title"))
    if not link or not title:
        return None
    if "/dp/" not in link and "/gp/product/" not in link:
        return None

    pagemap = item.get("pagemap") if isinstance(item.get("pagemap"), dict) else {}
    metatags = pagemap.get("metatags") or [{}]
    metatag = metatags[0] if isinstance(metatags, list) and metatags and isinstance(metatags[0], dict) else {}

    image_url = _first_str(metatag.get("og:image"))
    if not image_url:
        return None

    price = parse_price(metatag.get("og:price:amount"))
    if price is None:
        snippet_match = _SNIPPET_PRICE.search(item.get("snippet") or "")
        if snippet_match:
            price = parse_price(snippet_match.group(1))

    asin = extract_asin(link)
    if asin:
        url = f"https://www.amazon.com/dp/{asin}"
        if associate_tag:
            url = f"{url}?tag={associate_tag}"
    else:
        url = link

    return RawProduct(
        source_id=asin,
        source=Source.AMAZON,
        title=_AMAZON_TITLE_SUFFIX.sub("", title),
        image_url=image_url,
        price=price,
        currency=_first_str(metatag.get("og:price:currency")) or "USD",
        url=url,
    )


def normalize_etsy_listing(listing: dict[str, Any]) -> RawProduct | None:
    if not isinstance(listing, dict):
        return None

    title = _first_str(listing.get("title"))
    url = _first_str(listing.get("url"))
    listing_id = listing.get("listing_id")
    if not title or not url:
        return None

    price = None
    currency = "USD"
    raw_price = listing.get("price")
    if isinstance(raw_price, dict):
        try:
            divisor = int(raw_price.get("divisor") or 1)
            price = parse_price(Decimal(str(raw_price.get("amount"))) / divisor)
        except (InvalidOperation, TypeError, ValueError, ZeroDivisionError):
            price = None
        currency = _first_str(raw_price.get("currency_code")) or currency

    image_url = ""
    images = listing.get("images")
    if isinstance(images, list) and images and isinstance(images[0], dict):
        image_url = _first_str(images[0].get("url_570xN"), images[0].get("url_fullxfull")) or ""
    if not image_url:
        return None

    return RawProduct(
        source_id=str(listing_id) if listing_id is not None else None,
        source=Source.ETSY,
        title=title,
        image_url=image_url,
        price=price,
        currency=currency,
        url=url,
    )
