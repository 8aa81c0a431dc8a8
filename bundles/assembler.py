from __future__ import annotations

import logging
import re
import unicodedata
from typing import Optional

from app.core.logic_config import PipelineSettings
from app.repositories.bundles import BundleRepository, SlugConflict

from .errors import SlugExhausted
from .models import CuratedProduct, GiftBundle, GiftConcept, HumorStyle, PriceRange

logger = logging.getLogger(__name__)

STOP_WORDS = frozenset(
    {
        "the", "a", "an", "and", "or", "but", "in", "on", "at", "to", "for",
        "of", "with", "by", "from", "up", "about", "into", "through", "during",
        "is", "are", "was", "were", "be", "been", "being", "have", "has", "had",
        "do", "does", "did", "will", "would", "should", "could", "may", "might",
        "who", "what", "when", "where", "why", "how", "this", "that", "these",
        "those", "i", "you", "he", "she", "it", "we", "they", "my", "your",
    }
)

DEFAULT_SLUG = "gift-bundle"
SEO_TITLE_MAX = 60
SEO_DESCRIPTION_MAX = 160


def _words(text: str) -> list[str]:
    folded = unicodedata.normalize("NFKD", text or "").encode("ascii", "ignore").decode("ascii")
    return re.sub(r"[^a-z0-9\s]", " ", folded.lower()).split()


def _truncate_words(words: list[str], max_length: int, sep: str = "-") -> str:
    result = ""
    for word in words:
        candidate = f"{result}{sep}{word}" if result else word
        if len(candidate) > max_length:
            break
        result = candidate
    if not result and words:
        result = words[0][:max_length]
    return result


def slugify(text: str, max_length: int = 60) -> str:
    """URL-safe slug: ascii, lowercase, hyphenated, stop words dropped, cut on a word boundary."""
    words = _words(text)
    meaningful = [w for w in words if w not in STOP_WORDS] or words
    return _truncate_words(meaningful, max_length) or DEFAULT_SLUG


def extract_keywords(text: str) -> str:
    seen: list[str] = []
    for word in _words(text):
        if len(word) > 2 and word not in STOP_WORDS and word not in seen:
            seen.append(word)
    return " ".join(seen)


def _clip(text: str, limit: int) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    cut = text[:limit].rsplit(" ", 1)[0]
    return cut.rstrip(" ,.;:-")


def build_seo_fields(
    recipient_description: str, occasion: Optional[str], concepts: list[GiftConcept]
) -> tuple[str, str, str]:
    occasion_text = f" for {occasion}" if occasion else ""
    recipient = " ".join(recipient_description.split())

    title = _clip(f"Gift Ideas for {_clip(recipient, 35)}{occasion_text}", SEO_TITLE_MAX)
    themes = ", ".join(c.text for c in concepts)
    description = _clip(
        f"Discover {len(concepts)} funny gift ideas for {_clip(recipient, 80)}: {themes}.",
        SEO_DESCRIPTION_MAX,
    )

    keywords = ["gifts", *extract_keywords(recipient).split()[:3]]
    if occasion:
        keywords.append(occasion.strip().lower())
    return title, description, ", ".join(keywords)


class BundleAssembler:
    def __init__(self, repository: BundleRepository, config: PipelineSettings):
        self.repository = repository
        self.config = config

    def candidate_slugs(self, recipient_description: str) -> list[str]:
        """``base``, ``base-2``, ``base-3`` ... one per allowed attempt, each within the length bound."""
        max_length = self.config.slug_max_length
        base = slugify(recipient_description, max_length)
        slugs = [base]
        for n in range(2, self.config.slug_max_attempts + 1):
            suffix = f"-{n}"
            stem = _truncate_words(base.split("-"), max_length - len(suffix)) or DEFAULT_SLUG
            slugs.append(f"{stem}{suffix}")
        return slugs

    async def assemble(
        self,
        recipient_description: str,
        humor_style: HumorStyle,
        concepts: list[GiftConcept],
        products: list[CuratedProduct],
        occasion: Optional[str] = None,
        price_range: Optional[PriceRange] = None,
    ) -> GiftBundle:
        slug = None
        for candidate in self.candidate_slugs(recipient_description):
            if not await self.repository.slug_exists(candidate):
                slug = candidate
                break
        if slug is None:
            raise SlugExhausted(
                f"No free slug for {recipient_description[:50]!r}",
                {"attempts": self.config.slug_max_attempts},
            )

        seo_title, seo_description, seo_keywords = build_seo_fields(recipient_description, occasion, concepts)
        return GiftBundle(
            slug=slug,
            recipient_description=recipient_description,
            humor_style=humor_style,
            occasion=occasion,
            min_price=price_range.min_price if price_range else None,
            max_price=price_range.max_price if price_range else None,
            price_range=price_range.tier if price_range else None,
            seo_title=seo_title,
            seo_description=seo_description,
            seo_keywords=seo_keywords,
            recipient_keywords=extract_keywords(recipient_description),
            concepts=concepts,
            products=products,
            click_count=0,
            view_count=0,
            share_count=0,
        )

    async def save(self, bundle: GiftBundle) -> GiftBundle:
        """
        Inserts the bundle. A slug taken by a concurrent run moves the bundle
        to the next free candidate slug; running out raises SlugExhausted.
        """
        candidates = self.candidate_slugs(bundle.recipient_description)
        start = candidates.index(bundle.slug) if bundle.slug in candidates else 0

        for slug in candidates[start:]:
            attempt = bundle if slug == bundle.slug else bundle.model_copy(update={"slug": slug})
            try:
                await self.repository.insert_bundle(attempt)
                return attempt
            except SlugConflict:
                logger.info("Slug %s taken, trying next candidate", slug)

        raise SlugExhausted(
            f"All {len(candidates)} slug candidates taken for {bundle.recipient_description[:50]!r}",
            {"attempts": len(candidates)},
        )
