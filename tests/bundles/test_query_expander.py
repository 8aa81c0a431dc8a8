import pytest
from unittest.mock import AsyncMock, MagicMock

from app.services.llm.interface import LLMCallError
from bundles.errors import QueryExpansionFailed
from bundles.query_expander import QueriesResponse, QueryExpander


@pytest.fixture
def llm():
    mock = MagicMock()
    mock.generate = AsyncMock()
    return mock


@pytest.mark.asyncio
async def test_dedups_and_caps_queries(llm, pipeline_config, concepts):
    llm.generate.return_value = QueriesResponse(
        queries=["Garden Kneeler", "garden  kneeler", "", "trowel set", "seed kit", "gloves", "hose"]
    )

    queries = await QueryExpander(llm, pipeline_config).expand("mom", concepts[0])

    assert [q.text for q in queries] == ["garden kneeler", "trowel set", "seed kit", "gloves"]
    assert all(q.concept == concepts[0] for q in queries)


@pytest.mark.asyncio
async def test_partial_result_is_tolerated(llm, pipeline_config, concepts):
    llm.generate.return_value = QueriesResponse(queries=["garden kneeler"])
    queries = await QueryExpander(llm, pipeline_config).expand("mom", concepts[0])
    assert len(queries) == 1


@pytest.mark.asyncio
async def test_zero_queries_fail_the_concept(llm, pipeline_config, concepts):
    llm.generate.return_value = QueriesResponse(queries=[])
    with pytest.raises(QueryExpansionFailed) as exc_info:
        await QueryExpander(llm, pipeline_config).expand("mom", concepts[0])
    assert exc_info.value.fields["stage"] == "query_expansion"


@pytest.mark.asyncio
async def test_expand_all_drops_failed_concept(llm, pipeline_config, concepts):
    async def _generate(prompt, schema, **kwargs):
        if concepts[1].text in prompt:
            raise LLMCallError("timeout")
        return QueriesResponse(queries=["a", "b"])

    llm.generate.side_effect = _generate

    result = await QueryExpander(llm, pipeline_config).expand_all("mom", concepts)

    assert sorted(result) == [0, 2]
    # one call per concept plus a single retry for the failing one
    assert llm.generate.call_count == 4


@pytest.mark.asyncio
async def test_expand_all_fails_when_nothing_survives(llm, pipeline_config, concepts):
    llm.generate.return_value = QueriesResponse(queries=[])
    with pytest.raises(QueryExpansionFailed):
        await QueryExpander(llm, pipeline_config).expand_all("mom", concepts)


@pytest.mark.asyncio
async def test_non_string_queries_are_skipped(llm, pipeline_config, concepts):
    llm.generate.return_value = QueriesResponse(queries=[None, "garden kneeler", 42, {"q": "x"}, "seed kit"])

    queries = await QueryExpander(llm, pipeline_config).expand("mom", concepts[0])

    assert [q.text for q in queries] == ["garden kneeler", "seed kit"]


def test_reply_with_null_query_still_parses():
    assert QueriesResponse.model_validate({"queries": ["a", None]}).queries == ["a", None]
