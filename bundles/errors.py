from __future__ import annotations

from typing import Any, Optional

from starlette import status

from app.utils.errors import AppError


class PipelineError(AppError):
    """A stage-level failure that aborts the whole run before anything is persisted."""

    code = "pipeline_failed"
    stage = "pipeline"
    http_status = status.HTTP_502_BAD_GATEWAY

    def __init__(self, message: str, fields: Optional[dict[str, Any]] = None):
        payload = {"stage": self.stage}
        payload.update(fields or {})
        super().__init__(self.code, message, self.http_status, payload)


class ConceptGenerationFailed(PipelineError):
    code = "concept_generation_failed"
    stage = "concepts"


class QueryExpansionFailed(PipelineError):
    code = "query_expansion_failed"
    stage = "query_expansion"


class NoCandidatesFound(PipelineError):
    code = "no_candidates_found"
    stage = "retrieval"
    http_status = 422


class CurationFailed(PipelineError):
    code = "curation_failed"
    stage = "curation"


class CurationUnderfilled(PipelineError):
    code = "curation_underfilled"
    stage = "curation"
    http_status = 422


class SlugExhausted(PipelineError):
    code = "slug_exhausted"
    stage = "assembly"
    http_status = status.HTTP_409_CONFLICT


class PersistenceFailed(PipelineError):
    code = "persistence_failed"
    stage = "persistence"
    http_status = status.HTTP_500_INTERNAL_SERVER_ERROR
