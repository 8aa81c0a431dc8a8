import pytest

from bundles.models import BundleSummary, HumorStyle
from bundles.related import keyword_similarity, rank_related, related_score


def _summary(slug, **kwargs):
    kwargs.setdefault("humor_style", HumorStyle.PG)
    return BundleSummary(slug=slug, recipient_description=slug, **kwargs)


class _WithKeywords(BundleSummary):
    recipient_keywords: str = ""


@pytest.mark.parametrize(
    "left, right, expected",
    [
        ("mom loves gardening", "mom loves baking", 0.5),
        ("mom", "mom", 1.0),
        ("mom", "dad", 0.0),
        ("", "", 0.0),
        (None, "dad", 0.0),
    ],
)
def test_keyword_similarity(left, right, expected):
    assert keyword_similarity(left, right) == expected


def test_score_weights():
    source = _WithKeywords(
        slug="a",
        recipient_description="a",
        humor_style=HumorStyle.PG,
        occasion="Birthday",
        price_range="budget",
        recipient_keywords="dad grills",
    )
    twin = source.model_copy(update={"slug": "b"})
    assert related_score(source, twin) == 1.0
    assert related_score(source, twin.model_copy(update={"occasion": "Christmas"})) == 0.6
    assert related_score(source, twin.model_copy(update={"humor_style": HumorStyle.EDGY})) == 0.7
    assert related_score(source, twin.model_copy(update={"price_range": "premium"})) == 0.8


def test_missing_occasion_or_price_range_never_match():
    source = _summary("a")
    assert related_score(source, _summary("b")) == 0.3


def test_rank_excludes_self_and_keeps_order_on_ties():
    source = _summary("a", occasion="Birthday")
    candidates = [
        _summary("a", occasion="Birthday"),
        _summary("b"),
        _summary("c", occasion="Birthday"),
        _summary("d"),
    ]

    ranked = rank_related(source, candidates, limit=3)

    assert [(score, c.slug) for score, c in ranked] == [(0.7, "c"), (0.3, "b"), (0.3, "d")]
    assert rank_related(source, candidates, limit=0) == []
