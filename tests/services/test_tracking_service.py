import pytest
from unittest.mock import AsyncMock

from app.services.tracking import TrackingService


@pytest.fixture
def repository():
    mock = AsyncMock()
    mock.increment_product_click.return_value = 1
    return mock


@pytest.mark.asyncio
async def test_click_updates_counters_and_log(repository):
    service = TrackingService(repository)

    assert await service.track_click(product_id="amazon:b0abc", slug="mom-gardening", user_agent="ua") is True

    repository.increment_bundle_click.assert_awaited_once_with("mom-gardening")
    repository.increment_product_click.assert_awaited_once_with("amazon:b0abc")
    repository.record_product_click.assert_awaited_once_with(
        "amazon:b0abc", source="bundle", bundle_slug="mom-gardening", user_agent="ua", referer=None
    )


@pytest.mark.asyncio
async def test_trending_slug_is_not_a_bundle_click(repository):
    await TrackingService(repository).track_click(product_id="amazon:b0abc", slug="trending", source="trending")
    repository.increment_bundle_click.assert_not_called()
    assert repository.record_product_click.call_args.kwargs["bundle_slug"] is None


@pytest.mark.asyncio
async def test_unknown_product_still_succeeds(repository):
    repository.increment_product_click.return_value = 0
    assert await TrackingService(repository).track_click(product_id="missing") is True


@pytest.mark.asyncio
async def test_failures_are_swallowed(repository):
    repository.increment_product_click.side_effect = RuntimeError("db down")
    repository.increment_product_impressions.side_effect = RuntimeError("db down")
    repository.increment_bundle_share.side_effect = RuntimeError("db down")
    repository.increment_bundle_view.side_effect = RuntimeError("db down")
    service = TrackingService(repository)

    assert await service.track_click(product_id="amazon:b0abc") is True
    assert await service.track_impressions(["a", "b"]) is True
    assert await service.track_share("slug") is True
    assert await service.track_view("slug") is True


@pytest.mark.asyncio
async def test_impressions_skip_empty_ids(repository):
    await TrackingService(repository).track_impressions(["a", "", "b"])
    repository.increment_product_impressions.assert_awaited_once_with(["a", "b"])
