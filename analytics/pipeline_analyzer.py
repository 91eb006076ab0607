"""
Pipeline Commitment Analyzer
============================
Runs the full engine over one opportunity export and one commitment export:

    1. Index commitments by opportunity id
    2. Unfold opportunities into per-performer analytic records
    3. Detect missing commitments, build filter options, aggregate KPIs

Every call recomputes from scratch; nothing is kept between runs unless the
caller hands in a ResultCache.

Usage:
    python -m analytics.pipeline_analyzer \\
        --opportunities data/raw/oportunidades.csv \\
        --commitments data/raw/compromissos.csv
    python -m analytics.pipeline_analyzer --opportunities opps.xlsx \\
        --commitments actions.xlsx --output out.json --no-cache
"""
from __future__ import annotations

import argparse
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

from analytics.aggregation import compute_aggregations
from analytics.commitment_index import build_commitment_index
from analytics.coverage_gaps import detect_missing_commitments
from analytics.filter_options import build_filter_options
from analytics.join_engine import unfold_opportunities
from analytics.lib.config import PROJECT_ROOT, StageRules, load_config
from analytics.lib.errors import AnalyticsError, EmptyInputError
from analytics.lib.logger import setup_logger
from analytics.lib.result_cache import ResultCache
from analytics.lib.utils import atomic_write_json
from analytics.record_loader import load_records
from analytics.records import AnalyticRecord, MissingCommitmentRecord

logger = setup_logger("pipeline_analyzer")

PROCESSED_DIR = PROJECT_ROOT / "data" / "processed"
DEFAULT_OUTPUT = PROCESSED_DIR / "pipeline_analysis.json"


@dataclass
class PipelineAnalysisResult:
    records: List[AnalyticRecord]
    missing_commitments: List[MissingCommitmentRecord]
    filter_options: Dict[str, List[str]]
    aggregations: Dict[str, Any]
    record_counts: Dict[str, int] = field(default_factory=dict)
    generated_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "generated_at": self.generated_at,
            "record_counts": dict(self.record_counts),
            "records": [r.to_dict() for r in self.records],
            "missing_commitments": [m.to_dict() for m in self.missing_commitments],
            "filter_options": self.filter_options,
            "aggregations": self.aggregations,
        }


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def run_pipeline_analysis(
    opportunities: Iterable[Mapping[str, Any]],
    commitments: Iterable[Mapping[str, Any]],
    config: Optional[Dict[str, Any]] = None,
    cache: Optional[ResultCache] = None,
) -> PipelineAnalysisResult:
    """
    Join opportunities with their commitments and compute every analytic view.

    Args:
        opportunities: Opportunity rows keyed by column header.
        commitments: Commitment/action rows keyed by column header.
        config: Effective configuration (load_config()); defaults when omitted.
        cache: Where to keep the result for later reload, if anywhere.

    Returns:
        PipelineAnalysisResult for this batch.

    Raises:
        EmptyInputError: if neither input holds a single record.
    """
    config = config or load_config()
    # Work on private copies; callers keep ownership of their rows.
    opportunities = [dict(r) for r in opportunities]
    commitments = [dict(r) for r in commitments]

    if not opportunities and not commitments:
        raise EmptyInputError(opportunities=0, commitments=0)

    logger.info(
        "Starting pipeline analysis: %d opportunities, %d commitments",
        len(opportunities), len(commitments),
    )
    stages = StageRules.from_config(config)
    opp_columns = config["opportunity_columns"]
    act_columns = config["commitment_columns"]
    hot_threshold = config.get("hot_probability_threshold", 75)
    top_n = config.get("top_n", 10)
    run_start = time.perf_counter()

    start = time.perf_counter()
    index = build_commitment_index(commitments, act_columns)
    logger.info("Indexed commitments in %.1f ms", _elapsed_ms(start))

    start = time.perf_counter()
    joined = unfold_opportunities(opportunities, index, opp_columns, act_columns)
    logger.info("Unfolded opportunities in %.1f ms", _elapsed_ms(start))

    start = time.perf_counter()
    missing = detect_missing_commitments(opportunities, joined.coverage, opp_columns, stages)
    logger.info("Detected coverage gaps in %.1f ms", _elapsed_ms(start))

    start = time.perf_counter()
    filter_options = build_filter_options(joined.records, stages)
    aggregations = compute_aggregations(
        joined.records,
        commitments,
        stages=stages,
        hot_threshold=hot_threshold,
        top_n=top_n,
        commitment_columns=act_columns,
    )
    logger.info("Aggregated in %.1f ms", _elapsed_ms(start))

    result = PipelineAnalysisResult(
        records=joined.records,
        missing_commitments=missing,
        filter_options=filter_options,
        aggregations=aggregations,
        record_counts={
            "opportunities": len(opportunities),
            "commitments": len(commitments),
            "analytic_records": len(joined.records),
            "missing_commitments": len(missing),
        },
        generated_at=datetime.now(timezone.utc).isoformat(),
    )
    logger.info("Pipeline analysis complete in %.1f ms", _elapsed_ms(run_start))

    if cache is not None:
        cache.save(result.to_dict(), metadata={"record_counts": result.record_counts})

    return result


# ============================================================================
# CLI
# ============================================================================

def _parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Join CRM opportunities with logged commitments and report pipeline analytics",
    )
    parser.add_argument("--opportunities", required=True, type=Path,
                        help="Opportunity export (.csv, .xlsx or .json)")
    parser.add_argument("--commitments", required=True, type=Path,
                        help="Commitment/action export (.csv, .xlsx or .json)")
    parser.add_argument("--config", type=Path, default=None,
                        help="YAML config merged over the defaults")
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT,
                        help=f"Where to write the result JSON (default: {DEFAULT_OUTPUT})")
    parser.add_argument("--no-cache", action="store_true",
                        help="Do not store the result in the analysis cache")
    return parser.parse_args(argv)


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = _parse_args(argv)

    try:
        config = load_config(args.config)
        opportunities = load_records(args.opportunities)
        commitments = load_records(args.commitments)

        cache = None
        if config["cache"].get("enabled") and not args.no_cache:
            cache = ResultCache(config["cache"]["path"])

        result = run_pipeline_analysis(opportunities, commitments, config, cache)
    except AnalyticsError as e:
        logger.error("Pipeline analysis failed: %s", e)
        return 1

    if not atomic_write_json(result.to_dict(), args.output):
        return 1

    kpis = result.aggregations["kpis"]
    logger.info(
        "Output saved to %s (%d records, %d unique opportunities, %d missing commitments)",
        args.output, len(result.records), kpis["unique_opportunities"],
        len(result.missing_commitments),
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
