"""
Derived record types produced by the join engine and the coverage-gap detector.

Both are plain value objects rebuilt on every analysis run.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict


@dataclass
class AnalyticRecord:
    """One (opportunity, performer) row of the unfolded pipeline."""
    opportunity_id: str
    account_id: str
    account: str
    representative: str
    owner: str
    performer: str
    stage: str
    probability: str          # display form, e.g. "75%"
    probability_num: int
    expected_close_year: str
    expected_close_month: str
    expected_close_month_num: int
    expected_value: float
    closed_value: float
    commitment_count: int
    opportunity_type: str = ""
    opportunity_subtype: str = ""
    origin: str = ""
    closing_reason: str = ""
    loss_reason: str = ""
    competitors: str = ""
    city: str = ""
    state: str = ""
    segment: str = ""
    top_category: str = ""
    top_activity: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MissingCommitmentRecord:
    """An open opportunity on an account where the performer covers an older one."""
    opportunity_id: str
    account_id: str
    account: str
    performer: str
    stage: str
    probability: str
    expected_value: float
    expected_close_month: str
    expected_close_year: str
    created_at: str
    anchor_opportunity_id: str
    anchor_stage: str
    anchor_commitment_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
