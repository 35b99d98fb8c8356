"""Diagnostic snapshot endpoints."""
from fastapi import APIRouter, Depends, Query
from app.catalog import get_catalog, get_cause_catalog
from app.config import get_settings
from app.models import SnapshotCompareResponse, SnapshotOut, SnapshotVersionsResponse
from app.pipelines import SnapshotService
from app.services import CacheKeys, DiagnosticRepository, get_redis_cache, get_repository

router = APIRouter(prefix="/api/v1", tags=["Snapshots"])


def _service(repo: DiagnosticRepository) -> SnapshotService:
    return SnapshotService(repo, get_catalog(), get_cause_catalog())


@router.get(
    "/companies/{company_id}/snapshots",
    response_model=SnapshotVersionsResponse,
    summary="List report versions of a company"
)
async def list_snapshots(
    company_id: str,
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Versions newest first (cached)."""
    cache = get_redis_cache()
    cache_key = CacheKeys.company_snapshots(company_id)
    cached = cache.get(cache_key, SnapshotVersionsResponse)
    if cached:
        return cached

    response = SnapshotVersionsResponse(
        company_id=company_id,
        versions=_service(repo).list_versions(company_id),
    )
    cache.set(cache_key, response, get_settings().cache_ttl_snapshot)
    return response


@router.get(
    "/companies/{company_id}/snapshots/compare",
    response_model=SnapshotCompareResponse,
    summary="Compare two report versions"
)
async def compare_snapshots(
    company_id: str,
    from_version: int = Query(..., description="Earlier full_version"),
    to_version: int = Query(..., description="Later full_version"),
    repo: DiagnosticRepository = Depends(get_repository),
):
    """Per-process band and 0–100 score evolution between two versions."""
    return _service(repo).compare(company_id, from_version, to_version)


@router.get(
    "/assessments/{assessment_id}/snapshots/{full_version}",
    response_model=SnapshotOut,
    summary="Get one snapshot"
)
async def get_snapshot(
    assessment_id: str,
    full_version: int,
    repo: DiagnosticRepository = Depends(get_repository),
):
    cache = get_redis_cache()
    cache_key = CacheKeys.snapshot(assessment_id, full_version)
    cached = cache.get(cache_key, SnapshotOut)
    if cached:
        return cached

    response = SnapshotOut.model_validate(_service(repo).get(assessment_id, full_version))
    cache.set(cache_key, response, get_settings().cache_ttl_snapshot)
    return response
