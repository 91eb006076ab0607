"""
Aggregation & Analytics Layer
=============================
KPIs, funnels and rankings over the unfolded AnalyticRecord set.

The join emits one record per (opportunity, performer), so an opportunity
worked by three people appears three times. Metrics about the opportunity
itself (value, stage, probability) read from OpportunityLedger, which keeps
exactly one entry per opportunity id. Engagement volume (commitment counts)
is summed over every record, since each record's count belongs to a
different performer.

Value conventions:
  - won value uses the closed value; lost and open use the expected value
  - the high-probability forecast is an unweighted sum of expected values
"""
from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from analytics.lib.config import DEFAULT_CONFIG, NO_COMMITMENT, StageRules
from analytics.lib.logger import setup_logger
from analytics.lib.normalize import parse_date, read_field, read_raw, resolve_performer
from analytics.records import AnalyticRecord

logger = setup_logger("aggregation")

UNKNOWN_STAGE = "Unknown"
NO_REASON = "No reason"


def _safe_div(numerator: float, denominator: float, default: float = 0.0) -> float:
    """Zero-safe division."""
    if denominator == 0:
        return default
    return numerator / denominator


def _top(rows: List[Dict[str, Any]], key: str, limit: int) -> List[Dict[str, Any]]:
    """Sort rows by key descending; equal keys keep input order."""
    return sorted(rows, key=lambda r: r[key], reverse=True)[:limit]


# ---------------------------------------------------------------------------
# Deduplicated opportunity ledger
# ---------------------------------------------------------------------------

@dataclass
class OpportunityLedger:
    """One entry per opportunity id, built once and shared by every metric."""
    opportunities: Dict[str, AnalyticRecord] = field(default_factory=dict)
    # performer -> opportunity ids they hold a record for (insertion-ordered)
    performer_opportunities: Dict[str, Dict[str, None]] = field(default_factory=dict)

    @classmethod
    def from_records(cls, records: Iterable[AnalyticRecord]) -> "OpportunityLedger":
        ledger = cls()
        for record in records:
            # Records of one opportunity share its attributes; keep the first.
            ledger.opportunities.setdefault(record.opportunity_id, record)
            ledger.performer_opportunities.setdefault(record.performer, {})[
                record.opportunity_id
            ] = None
        return ledger

    def __len__(self) -> int:
        return len(self.opportunities)

    def __iter__(self) -> Iterator[AnalyticRecord]:
        return iter(self.opportunities.values())

    def __contains__(self, opp_id: str) -> bool:
        return opp_id in self.opportunities


# ---------------------------------------------------------------------------
# KPIs
# ---------------------------------------------------------------------------

def compute_kpis(
    ledger: OpportunityLedger,
    records: Sequence[AnalyticRecord],
    stages: StageRules,
    hot_threshold: int = 75,
) -> Dict[str, Any]:
    total_commitments = sum(r.commitment_count for r in records)

    hot = won = lost = open_count = 0
    won_value = lost_value = open_value = forecast_value = expected_total = 0.0
    for opp in ledger:
        expected_total += opp.expected_value
        is_hot = opp.probability_num >= hot_threshold
        if is_hot:
            hot += 1
        if stages.is_won(opp.stage):
            won += 1
            won_value += opp.closed_value
        elif stages.is_lost(opp.stage):
            lost += 1
            lost_value += opp.expected_value
        else:
            open_count += 1
            open_value += opp.expected_value
            if is_hot:
                forecast_value += opp.expected_value

    return {
        "unique_opportunities": len(ledger),
        "total_commitments": total_commitments,
        "hot_opportunities": hot,
        "won_count": won,
        "lost_count": lost,
        "open_count": open_count,
        "won_value": round(won_value, 2),
        "lost_value": round(lost_value, 2),
        "open_value": round(open_value, 2),
        "total_value": round(won_value + lost_value + open_value, 2),
        "total_expected_value": round(expected_total, 2),
        "forecast_value": round(forecast_value, 2),
        "win_rate": round(_safe_div(won, won + lost), 4),
    }


def summarize_kpis(
    records: Sequence[AnalyticRecord],
    stages: Optional[StageRules] = None,
    hot_threshold: int = 75,
) -> Dict[str, Any]:
    """KPIs over any (possibly filtered) slice of the record set."""
    stages = stages or StageRules.from_config()
    return compute_kpis(OpportunityLedger.from_records(records), records, stages, hot_threshold)


# ---------------------------------------------------------------------------
# Funnels and rankings
# ---------------------------------------------------------------------------

def stage_funnel(ledger: OpportunityLedger) -> List[Dict[str, Any]]:
    """Distinct opportunity count and expected value per stage, first-seen order."""
    funnel: Dict[str, Dict[str, Any]] = {}
    for opp in ledger:
        stage = opp.stage or UNKNOWN_STAGE
        entry = funnel.setdefault(stage, {"stage": stage, "count": 0, "value": 0.0})
        entry["count"] += 1
        entry["value"] += opp.expected_value
    return [{**e, "value": round(e["value"], 2)} for e in funnel.values()]


def forecast_funnel(ledger: OpportunityLedger, hot_threshold: int = 75) -> List[Dict[str, Any]]:
    """Per-stage view of high-probability opportunities, largest value first."""
    funnel: Dict[str, Dict[str, Any]] = {}
    for opp in ledger:
        if opp.probability_num < hot_threshold:
            continue
        stage = opp.stage or UNKNOWN_STAGE
        entry = funnel.setdefault(stage, {"stage": stage, "count": 0, "value": 0.0, "probs": []})
        entry["count"] += 1
        entry["value"] += opp.expected_value
        entry["probs"].append(opp.probability_num)

    rows = [
        {
            "stage": e["stage"],
            "count": e["count"],
            "value": round(e["value"], 2),
            "avg_probability": round(_safe_div(sum(e["probs"]), len(e["probs"])), 1),
        }
        for e in funnel.values()
    ]
    return _top(rows, "value", len(rows))


def loss_reason_ranking(
    ledger: OpportunityLedger,
    stages: StageRules,
    top_n: int = 10,
) -> List[Dict[str, Any]]:
    """Top loss reasons by expected value of lost opportunities, each counted once."""
    reasons: Dict[str, Dict[str, Any]] = {}
    for opp in ledger:
        if not stages.is_lost(opp.stage):
            continue
        reason = opp.loss_reason or NO_REASON
        entry = reasons.setdefault(reason, {"reason": reason, "count": 0, "value": 0.0})
        entry["count"] += 1
        entry["value"] += opp.expected_value
    rows = [{**e, "value": round(e["value"], 2)} for e in reasons.values()]
    return _top(rows, "value", top_n)


def performer_leaderboard(
    ledger: OpportunityLedger,
    stages: StageRules,
    hot_threshold: int = 75,
    top_n: int = 10,
) -> List[Dict[str, Any]]:
    """Top performers by open, high-probability expected value.

    Each performer is credited once per opportunity; two performers on the
    same opportunity are both credited with it.
    """
    rows: List[Dict[str, Any]] = []
    for performer, opp_ids in ledger.performer_opportunities.items():
        if performer == NO_COMMITMENT:
            continue
        count, value = 0, 0.0
        for opp_id in opp_ids:
            opp = ledger.opportunities[opp_id]
            if opp.probability_num < hot_threshold or not stages.is_open(opp.stage):
                continue
            count += 1
            value += opp.expected_value
        if count:
            rows.append({"performer": performer, "count": count, "value": round(value, 2)})
    return _top(rows, "value", top_n)


def performer_comparison(
    records: Sequence[AnalyticRecord],
    stages: StageRules,
) -> List[Dict[str, Any]]:
    """Side-by-side performer matrix: win rate, won/lost/at-risk value, engagement."""
    stats: Dict[str, Dict[str, Any]] = defaultdict(
        lambda: {
            "opportunities": 0,
            "won": 0,
            "won_value": 0.0,
            "lost_value": 0.0,
            "at_risk_value": 0.0,
            "total_value": 0.0,
            "commitments": 0,
        }
    )
    for r in records:
        entry = stats[r.performer]
        entry["opportunities"] += 1
        entry["total_value"] += r.expected_value
        entry["commitments"] += r.commitment_count
        if stages.is_won(r.stage):
            entry["won"] += 1
            entry["won_value"] += r.closed_value
        elif stages.is_lost(r.stage):
            entry["lost_value"] += r.expected_value
        else:
            entry["at_risk_value"] += r.expected_value

    rows = []
    for performer, s in stats.items():
        total = s["opportunities"]
        rows.append({
            "performer": performer,
            "opportunities": total,
            "won": s["won"],
            "win_rate": round(_safe_div(s["won"], total) * 100, 1),
            "won_value": round(s["won_value"], 2),
            "lost_value": round(s["lost_value"], 2),
            "at_risk_value": round(s["at_risk_value"], 2),
            "average_value": round(_safe_div(s["total_value"], total), 2),
            "commitments": s["commitments"],
            "commitments_per_opportunity": round(_safe_div(s["commitments"], total), 2),
        })
    return _top(rows, "win_rate", len(rows))


def commitment_evolution(
    commitments: Iterable[Mapping[str, Any]],
    ledger: OpportunityLedger,
    commitment_columns: Mapping[str, Any] = None,
) -> Dict[str, Any]:
    """Commitments per performer per MM/YYYY, for opportunities in the ledger."""
    columns = commitment_columns or DEFAULT_CONFIG["commitment_columns"]
    by_performer: Dict[str, Dict[str, int]] = {}
    months: Dict[tuple, str] = {}

    for c in commitments:
        if read_field(c, columns["opportunity_id"]) not in ledger:
            continue
        performer = resolve_performer(c, columns["performer"])
        if performer == NO_COMMITMENT:
            continue
        parsed = parse_date(read_raw(c, columns["date"]))
        if not parsed.month_num:
            continue
        key = f"{parsed.month_num:02d}/{parsed.year}"
        months[(int(parsed.year), parsed.month_num)] = key
        counts = by_performer.setdefault(performer, {})
        counts[key] = counts.get(key, 0) + 1

    ordered_months = [months[k] for k in sorted(months)]
    return {
        "months": ordered_months,
        "by_performer": [
            {"performer": p, "counts": {m: counts.get(m, 0) for m in ordered_months}}
            for p, counts in by_performer.items()
        ],
    }


# ---------------------------------------------------------------------------
# Bundle
# ---------------------------------------------------------------------------

def compute_aggregations(
    records: Sequence[AnalyticRecord],
    commitments: Iterable[Mapping[str, Any]] = (),
    stages: Optional[StageRules] = None,
    hot_threshold: int = 75,
    top_n: int = 10,
    commitment_columns: Mapping[str, Any] = None,
) -> Dict[str, Any]:
    """Compute every aggregate from one shared ledger."""
    stages = stages or StageRules.from_config()
    ledger = OpportunityLedger.from_records(records)

    bundle = {
        "kpis": compute_kpis(ledger, records, stages, hot_threshold),
        "funnel": stage_funnel(ledger),
        "forecast_funnel": forecast_funnel(ledger, hot_threshold),
        "loss_reasons": loss_reason_ranking(ledger, stages, top_n),
        "leaderboard": performer_leaderboard(ledger, stages, hot_threshold, top_n),
        "performer_comparison": performer_comparison(records, stages),
        "commitment_evolution": commitment_evolution(commitments, ledger, commitment_columns),
    }
    logger.info(
        "Aggregated %d records over %d unique opportunities",
        len(records), len(ledger),
    )
    return bundle
