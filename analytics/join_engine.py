"""
Join & Unfold Engine
====================
Unfolds every opportunity into one AnalyticRecord per performer that logged
commitments on it (1:N), or a single "No Commitment" record when nobody did.

While unfolding, it records which opportunities each performer covers per
account. That coverage index is the only input the coverage-gap detector
needs besides the raw opportunities.
"""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Tuple

from analytics.lib.config import DEFAULT_CONFIG, NO_COMMITMENT
from analytics.lib.logger import setup_logger
from analytics.lib.normalize import (
    parse_currency,
    parse_date,
    parse_probability,
    read_field,
    read_raw,
    resolve_performer,
)
from analytics.records import AnalyticRecord

logger = setup_logger("join_engine")

# Opportunity attributes copied verbatim (trimmed) onto every record.
_PASSTHROUGH_FIELDS = (
    ("account_id", "account_id"),
    ("account", "account"),
    ("representative", "representative"),
    ("owner", "owner"),
    ("stage", "stage"),
    ("opportunity_type", "type"),
    ("opportunity_subtype", "subtype"),
    ("origin", "origin"),
    ("closing_reason", "closing_reason"),
    ("loss_reason", "loss_reason"),
    ("competitors", "competitors"),
    ("city", "city"),
    ("state", "state"),
    ("segment", "segment"),
)


@dataclass
class CoverageIndex:
    """performer -> account id -> ids of that account's opportunities the performer covers.

    The innermost level is an insertion-ordered set (dict keys) so anchor
    selection and gap output are deterministic across runs.
    """
    covered: Dict[str, Dict[str, Dict[str, None]]] = field(default_factory=dict)
    # (performer, opportunity id) -> commitments the performer logged there
    commitment_counts: Dict[Tuple[str, str], int] = field(default_factory=dict)

    def add(self, performer: str, account_id: str, opp_id: str, count: int) -> None:
        self.covered.setdefault(performer, {}).setdefault(account_id, {})[opp_id] = None
        self.commitment_counts[(performer, opp_id)] = count

    def count_for(self, performer: str, opp_id: str) -> int:
        return self.commitment_counts.get((performer, opp_id), 0)


@dataclass
class JoinResult:
    records: List[AnalyticRecord]
    coverage: CoverageIndex


def _most_frequent(values: Iterable[str]) -> str:
    """Most common non-empty value; ties go to the value seen first."""
    counts = Counter(v for v in values if v)
    if not counts:
        return ""
    return counts.most_common(1)[0][0]


def _opportunity_fields(opp: Mapping[str, Any], columns: Mapping[str, Any]) -> Dict[str, Any]:
    """Normalize the opportunity-level attributes shared by all of its records."""
    close = parse_date(read_raw(opp, columns["expected_close"]))
    prob = parse_probability(read_raw(opp, columns["probability"]))
    fields: Dict[str, Any] = {
        "opportunity_id": read_field(opp, columns["id"]),
        "probability": prob.display,
        "probability_num": prob.numeric,
        "expected_close_year": close.year,
        "expected_close_month": close.month,
        "expected_close_month_num": close.month_num,
        "expected_value": parse_currency(read_raw(opp, columns["expected_value"])),
        "closed_value": parse_currency(read_raw(opp, columns["closed_value"])),
    }
    for attr, role in _PASSTHROUGH_FIELDS:
        fields[attr] = read_field(opp, columns[role])
    return fields


def partition_by_performer(
    commitments: Iterable[Mapping[str, Any]],
    performer_fields: Iterable[str],
) -> Dict[str, List[Mapping[str, Any]]]:
    """Group commitments by resolved performer, keeping first-seen order."""
    if isinstance(performer_fields, str):
        performer_fields = [performer_fields]
    else:
        performer_fields = list(performer_fields)
    groups: Dict[str, List[Mapping[str, Any]]] = {}
    for commitment in commitments:
        performer = resolve_performer(commitment, performer_fields)
        groups.setdefault(performer, []).append(commitment)
    return groups


def unfold_opportunities(
    opportunities: Iterable[Mapping[str, Any]],
    commitment_index: Mapping[str, List[Mapping[str, Any]]],
    opportunity_columns: Mapping[str, Any] = None,
    commitment_columns: Mapping[str, Any] = None,
) -> JoinResult:
    """
    Emit AnalyticRecords for every opportunity and build the coverage index.

    Args:
        opportunities: Raw opportunity rows.
        commitment_index: Output of build_commitment_index().
        opportunity_columns: Logical field -> opportunity column header.
        commitment_columns: Logical field -> commitment column header.

    Returns:
        JoinResult with at least one record per opportunity.
    """
    opp_columns = opportunity_columns or DEFAULT_CONFIG["opportunity_columns"]
    act_columns = commitment_columns or DEFAULT_CONFIG["commitment_columns"]

    records: List[AnalyticRecord] = []
    coverage = CoverageIndex()
    uncovered = 0

    for opp in opportunities:
        base = _opportunity_fields(opp, opp_columns)
        opp_id = base["opportunity_id"]
        account_id = base["account_id"]
        linked = commitment_index.get(opp_id, []) if opp_id else []

        if not linked:
            uncovered += 1
            records.append(AnalyticRecord(
                **base,
                performer=NO_COMMITMENT,
                commitment_count=0,
            ))
            continue

        for performer, performer_commitments in partition_by_performer(
            linked, act_columns["performer"],
        ).items():
            count = len(performer_commitments)
            if account_id and performer != NO_COMMITMENT:
                coverage.add(performer, account_id, opp_id, count)

            records.append(AnalyticRecord(
                **base,
                performer=performer,
                commitment_count=count,
                top_category=_most_frequent(
                    read_field(c, act_columns["category"]) for c in performer_commitments
                ),
                top_activity=_most_frequent(
                    read_field(c, act_columns["activity"]) for c in performer_commitments
                ),
            ))

    logger.info(
        "Unfolded opportunities into %d records (%d without commitments, %d performers with coverage)",
        len(records), uncovered, len(coverage.covered),
    )
    return JoinResult(records=records, coverage=coverage)
