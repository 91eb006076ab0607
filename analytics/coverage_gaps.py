"""
Missing-Commitment Detector
===========================
Flags coverage gaps: an account where a performer already works one
opportunity but has logged nothing on a newer, still-open one.

"Newer" is judged by the sequence number embedded in the opportunity id
(its digits read as an integer). For each (performer, account) pair the
covered opportunity with the highest sequence number is the anchor; any
uncovered open opportunity on that account whose sequence number is strictly
greater than the anchor's is reported.

This assumes ids are allocated in creation order. Id schemes without digits
all collapse to sequence 0 and never produce gaps against each other.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from analytics.join_engine import CoverageIndex
from analytics.lib.config import DEFAULT_CONFIG, StageRules
from analytics.lib.logger import setup_logger
from analytics.lib.normalize import (
    extract_sequence_number,
    parse_currency,
    parse_date,
    parse_probability,
    read_field,
    read_raw,
)
from analytics.records import MissingCommitmentRecord

logger = setup_logger("coverage_gaps")


def find_anchor(covered_ids: Iterable[str]) -> Tuple[str, int]:
    """Return (id, sequence) of the covered opportunity with the highest sequence.

    Ties keep the id seen first.
    """
    anchor_id, anchor_seq = "", -1
    for opp_id in covered_ids:
        seq = extract_sequence_number(opp_id)
        if seq > anchor_seq:
            anchor_id, anchor_seq = opp_id, seq
    return anchor_id, max(anchor_seq, 0)


def _index_opportunities(
    opportunities: Iterable[Mapping[str, Any]],
    columns: Mapping[str, Any],
) -> Tuple[Dict[str, Mapping[str, Any]], Dict[str, List[Mapping[str, Any]]]]:
    """Build id -> opportunity (last write wins) and account id -> opportunities."""
    by_id: Dict[str, Mapping[str, Any]] = {}
    by_account: Dict[str, List[Mapping[str, Any]]] = {}
    for opp in opportunities:
        by_id[read_field(opp, columns["id"])] = opp
        account_id = read_field(opp, columns["account_id"])
        if account_id:
            by_account.setdefault(account_id, []).append(opp)
    return by_id, by_account


def detect_missing_commitments(
    opportunities: Iterable[Mapping[str, Any]],
    coverage: CoverageIndex,
    opportunity_columns: Mapping[str, Any] = None,
    stages: Optional[StageRules] = None,
) -> List[MissingCommitmentRecord]:
    """
    Report open opportunities a performer has not engaged on accounts they serve.

    Args:
        opportunities: Raw opportunity rows (the same rows given to the join).
        coverage: CoverageIndex from unfold_opportunities().
        opportunity_columns: Logical field -> opportunity column header.
        stages: Terminal stage rules; won/lost opportunities are never gaps.

    Returns:
        Gap records in performer, then account, then input order.
    """
    columns = opportunity_columns or DEFAULT_CONFIG["opportunity_columns"]
    stages = stages or StageRules.from_config()
    by_id, by_account = _index_opportunities(opportunities, columns)

    missing: List[MissingCommitmentRecord] = []
    for performer, accounts in coverage.covered.items():
        for account_id, covered_ids in accounts.items():
            anchor_id, anchor_seq = find_anchor(covered_ids)
            anchor_stage = read_field(by_id.get(anchor_id, {}), columns["stage"])
            anchor_count = coverage.count_for(performer, anchor_id)

            for opp in by_account.get(account_id, []):
                opp_id = read_field(opp, columns["id"])
                if opp_id in covered_ids:
                    continue
                if extract_sequence_number(opp_id) <= anchor_seq:
                    continue
                stage = read_field(opp, columns["stage"])
                if not stages.is_open(stage):
                    continue

                close = parse_date(read_raw(opp, columns["expected_close"]))
                missing.append(MissingCommitmentRecord(
                    opportunity_id=opp_id,
                    account_id=account_id,
                    account=read_field(opp, columns["account"]),
                    performer=performer,
                    stage=stage,
                    probability=parse_probability(read_raw(opp, columns["probability"])).display,
                    expected_value=parse_currency(read_raw(opp, columns["expected_value"])),
                    expected_close_month=close.month,
                    expected_close_year=close.year,
                    created_at=read_field(opp, columns["created"]),
                    anchor_opportunity_id=anchor_id,
                    anchor_stage=anchor_stage,
                    anchor_commitment_count=anchor_count,
                ))

    logger.info(
        "Detected %d missing commitments across %d performers",
        len(missing), len({m.performer for m in missing}),
    )
    return missing
