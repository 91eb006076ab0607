"""
Pipeline Commitment Analytics — Analysis Router
=================================================
Runs the opportunity/commitment engine and serves the last cached result.

Endpoints:
  POST /api/analysis                              - Run a full analysis
  GET  /api/analysis/latest                       - Last cached result
  POST /api/analysis/latest/kpis                  - KPIs over a filtered slice
  GET  /api/analysis/latest/missing-commitments   - Coverage gaps, by performer
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query
from starlette.concurrency import run_in_threadpool

from analytics.aggregation import summarize_kpis
from analytics.filter_options import filter_records
from analytics.lib.config import StageRules, load_config
from analytics.lib.errors import AnalyticsError, CacheError, EmptyInputError
from analytics.lib.logger import setup_logger
from analytics.lib.result_cache import ResultCache
from analytics.pipeline_analyzer import run_pipeline_analysis
from analytics.records import AnalyticRecord
from models.analysis_models import (
    AnalysisRequest,
    AnalysisResponse,
    FilterSelection,
    KpiResponse,
    MissingCommitmentList,
)

logger = setup_logger("analysis_router")

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


def _get_cache(config: Dict[str, Any]) -> Optional[ResultCache]:
    cache_config = config.get("cache", {})
    if not cache_config.get("enabled"):
        return None
    return ResultCache(cache_config["path"])


def _load_latest(config: Dict[str, Any]) -> Dict[str, Any]:
    """Return the cached entry or raise 404."""
    cache = _get_cache(config)
    if cache is None:
        raise HTTPException(status_code=404, detail="Result cache is disabled")
    try:
        entry = cache.load()
    except CacheError as e:
        logger.error("Cached analysis unreadable: %s", e)
        entry = None
    if entry is None:
        raise HTTPException(
            status_code=404,
            detail="No analysis available. POST /api/analysis first.",
        )
    return entry


@router.post("", response_model=AnalysisResponse)
async def run_analysis(req: AnalysisRequest):
    """Join the uploaded opportunities and commitments and return every view."""
    config = load_config()
    try:
        result = await run_in_threadpool(
            run_pipeline_analysis,
            req.opportunities,
            req.commitments,
            config,
            _get_cache(config),
        )
    except EmptyInputError as e:
        raise HTTPException(
            status_code=422,
            detail={"code": e.code, "message": str(e)},
        )
    except AnalyticsError as e:
        logger.error("Pipeline analysis failed: %s", e)
        raise HTTPException(status_code=500, detail={"code": e.code, "message": str(e)})
    return result.to_dict()


@router.get("/latest", response_model=AnalysisResponse)
async def latest_analysis():
    """Most recent cached analysis result."""
    entry = _load_latest(load_config())
    return {**entry["result"], "cached_at": entry.get("saved_at")}


@router.post("/latest/kpis", response_model=KpiResponse)
async def filtered_kpis(selection: FilterSelection):
    """Recompute KPIs over the cached records matching the selection."""
    config = load_config()
    entry = _load_latest(config)
    records = [AnalyticRecord(**r) for r in entry["result"].get("records", [])]
    selected = filter_records(records, selection.model_dump())
    return summarize_kpis(
        selected,
        StageRules.from_config(config),
        config.get("hot_probability_threshold", 75),
    )


@router.get("/latest/missing-commitments", response_model=MissingCommitmentList)
async def missing_commitments(
    performer: str = Query(None, description="Only gaps for this performer"),
):
    """Coverage gaps from the cached result, optionally for one performer."""
    entry = _load_latest(load_config())
    gaps = entry["result"].get("missing_commitments", [])
    if performer:
        gaps = [g for g in gaps if g.get("performer") == performer]
    return {"results": gaps, "count": len(gaps)}
