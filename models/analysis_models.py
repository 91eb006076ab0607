"""
Pipeline Commitment Analytics — API Pydantic Models
====================================================

Request/response models for the analysis endpoints.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ─── Requests ───────────────────────────────────────────────

class AnalysisRequest(BaseModel):
    """Raw export rows, keyed by column header."""
    opportunities: List[Dict[str, Any]] = Field(default_factory=list)
    commitments: List[Dict[str, Any]] = Field(default_factory=list)


class FilterSelection(BaseModel):
    """Selected option values per filter field; empty lists are ignored."""
    years: List[str] = Field(default_factory=list)
    months: List[str] = Field(default_factory=list)
    representatives: List[str] = Field(default_factory=list)
    owners: List[str] = Field(default_factory=list)
    performers: List[str] = Field(default_factory=list)
    stages: List[str] = Field(default_factory=list)
    probabilities: List[str] = Field(default_factory=list)
    accounts: List[str] = Field(default_factory=list)
    types: List[str] = Field(default_factory=list)
    origins: List[str] = Field(default_factory=list)
    segments: List[str] = Field(default_factory=list)
    commitment_counts: List[str] = Field(default_factory=list)


# ─── Responses ──────────────────────────────────────────────

class KpiResponse(BaseModel):
    unique_opportunities: int = 0
    total_commitments: int = 0
    hot_opportunities: int = 0
    won_count: int = 0
    lost_count: int = 0
    open_count: int = 0
    won_value: float = 0.0
    lost_value: float = 0.0
    open_value: float = 0.0
    total_value: float = 0.0
    total_expected_value: float = 0.0
    forecast_value: float = 0.0
    win_rate: float = 0.0


class MissingCommitmentResponse(BaseModel):
    opportunity_id: str
    account_id: str
    account: str = ""
    performer: str
    stage: str = ""
    probability: str = ""
    expected_value: float = 0.0
    expected_close_month: str = ""
    expected_close_year: str = ""
    created_at: str = ""
    anchor_opportunity_id: str
    anchor_stage: str = ""
    anchor_commitment_count: int = 0


class MissingCommitmentList(BaseModel):
    results: List[MissingCommitmentResponse] = Field(default_factory=list)
    count: int = 0


class AnalysisResponse(BaseModel):
    """Full result of one analysis run."""
    generated_at: str
    record_counts: Dict[str, int] = Field(default_factory=dict)
    records: List[Dict[str, Any]] = Field(default_factory=list)
    missing_commitments: List[MissingCommitmentResponse] = Field(default_factory=list)
    filter_options: Dict[str, List[str]] = Field(default_factory=dict)
    aggregations: Dict[str, Any] = Field(default_factory=dict)
    cached_at: Optional[str] = None
