from decimal import Decimal

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from unittest.mock import AsyncMock

from app.deps import get_bundle_repository, get_pipeline, get_tracking_service
from app.services.tracking import TrackingService
from app.utils.errors import install_exception_handlers
from bundles.errors import CurationUnderfilled
from bundles.models import (
    CandidateProduct,
    CuratedProduct,
    GiftBundle,
    GiftConcept,
    HumorStyle,
    PriceRange,
    RelatedBundle,
    Source,
)
from routes.bundles import router


@pytest.fixture
def bundle():
    concept = GiftConcept(text="Dirt Don't Hurt", order=0, tagline="Get dirty")
    product = CandidateProduct(
        identity_key="amazon:b000000001",
        source=Source.AMAZON,
        source_id="B000000001",
        title="Garden Kneeler",
        image_url="https://img/x.jpg",
        price=Decimal("29.99"),
        url="https://www.amazon.com/dp/B000000001",
    )
    return GiftBundle(
        slug="mom-loves-gardening",
        recipient_description="my mom who loves gardening",
        humor_style=HumorStyle.PG,
        seo_title="Gift Ideas for my mom who loves gardening",
        concepts=[concept],
        products=[CuratedProduct(product=product, rank=0, matched_concept=concept)],
    )


@pytest.fixture
def pipeline():
    return AsyncMock()


@pytest.fixture
def repository():
    return AsyncMock()


@pytest.fixture
def client(pipeline, repository):
    app = FastAPI()
    install_exception_handlers(app)
    app.include_router(router)
    app.dependency_overrides[get_pipeline] = lambda: pipeline
    app.dependency_overrides[get_bundle_repository] = lambda: repository
    app.dependency_overrides[get_tracking_service] = lambda: TrackingService(repository)
    return TestClient(app)


def test_generate(client, pipeline, bundle):
    pipeline.run.return_value = bundle

    response = client.post(
        "/api/v1/bundles/generate",
        json={"recipientDescription": "my mom who loves gardening", "humorStyle": "pg"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["slug"] == "mom-loves-gardening"
    assert body["permalink"].endswith("/mom-loves-gardening")
    assert body["products"][0]["concept"] == "Dirt Don't Hurt"
    pipeline.run.assert_awaited_once_with("my mom who loves gardening", HumorStyle.PG, None, None)


def test_generate_failure_names_stage(client, pipeline):
    pipeline.run.side_effect = CurationUnderfilled("too few", {"selected": 2, "minimum": 5})

    response = client.post("/api/v1/bundles/generate", json={"recipientDescription": "my mom"})

    assert response.status_code == 422
    error = response.json()["error"]
    assert error["code"] == "curation_underfilled"
    assert error["fields"]["stage"] == "curation"


def test_generate_validates_humor_style(client):
    response = client.post(
        "/api/v1/bundles/generate", json={"recipientDescription": "my mom", "humorStyle": "slapstick"}
    )
    assert response.status_code == 422


def test_get_bundle_counts_view(client, repository, bundle):
    repository.find_bundle_by_slug.return_value = bundle

    response = client.get("/api/v1/bundles/mom-loves-gardening")

    assert response.status_code == 200
    assert response.json()["products"][0]["id"] == "amazon:b000000001"
    repository.increment_bundle_view.assert_awaited_once_with("mom-loves-gardening")


def test_get_missing_bundle(client, repository):
    repository.find_bundle_by_slug.return_value = None
    assert client.get("/api/v1/bundles/nope").status_code == 404
    repository.increment_bundle_view.assert_not_called()


def test_generate_passes_budget(client, pipeline, bundle):
    pipeline.run.return_value = bundle.model_copy(update={"min_price": 20, "max_price": 60, "price_range": "mid"})

    response = client.post(
        "/api/v1/bundles/generate",
        json={"recipientDescription": "my mom who loves gardening", "minPrice": 20, "maxPrice": 60},
    )

    assert response.status_code == 201
    assert response.json()["price_range"] == "mid"
    args = pipeline.run.await_args.args
    assert args[3] == PriceRange(min_price=20, max_price=60)


@pytest.mark.parametrize(
    "budget",
    [{"minPrice": 80, "maxPrice": 20}, {"minPrice": -1}, {"maxPrice": "lots"}],
)
def test_generate_rejects_bad_budget(client, pipeline, budget):
    response = client.post("/api/v1/bundles/generate", json={"recipientDescription": "my mom", **budget})

    assert response.status_code == 422
    pipeline.run.assert_not_called()


def test_related_bundles(client, repository):
    repository.find_related_bundles.return_value = [
        RelatedBundle(
            slug="dad-loves-gardening",
            recipient_description="my dad who loves gardening",
            humor_style=HumorStyle.PG,
            score=0.7,
        )
    ]

    response = client.get("/api/v1/bundles/mom-loves-gardening/related?limit=2")

    assert response.status_code == 200
    assert response.json() == [
        {
            "slug": "dad-loves-gardening",
            "recipient_description": "my dad who loves gardening",
            "humor_style": "pg",
            "occasion": None,
            "price_range": None,
            "seo_title": None,
            "view_count": 0,
            "click_count": 0,
            "created_at": None,
            "score": 0.7,
        }
    ]
    repository.find_related_bundles.assert_awaited_once_with("mom-loves-gardening", 2)


def test_related_bundles_of_missing_bundle(client, repository):
    repository.find_related_bundles.return_value = None
    assert client.get("/api/v1/bundles/nope/related").status_code == 404
