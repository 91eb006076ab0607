"""
Filter options and record filtering for the analytic record set.

build_filter_options() lists the distinct values a dashboard can offer per
field; filter_records() applies a selection made from those lists.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence

from analytics.lib.config import StageRules
from analytics.lib.logger import setup_logger
from analytics.lib.normalize import MONTH_NAMES, parse_probability
from analytics.records import AnalyticRecord

logger = setup_logger("filter_options")

# Option key -> AnalyticRecord attribute
FILTER_FIELDS: Dict[str, str] = {
    "years": "expected_close_year",
    "months": "expected_close_month",
    "representatives": "representative",
    "owners": "owner",
    "performers": "performer",
    "stages": "stage",
    "probabilities": "probability",
    "accounts": "account",
    "types": "opportunity_type",
    "origins": "origin",
    "segments": "segment",
}

COMMITMENT_BUCKETS = ("0", "1", "2", "3+")

_MONTH_ORDER = {name: num for num, name in MONTH_NAMES.items()}


def commitment_bucket(count: int) -> str:
    """Bucket a per-record commitment count into 0 / 1 / 2 / 3+."""
    if count >= 3:
        return "3+"
    return str(max(count, 0))


def _stage_sort_key(order: Sequence[str]) -> Callable[[str], tuple]:
    position = {stage: i for i, stage in enumerate(order)}
    return lambda stage: (position.get(stage, len(position)), stage)


def _distinct(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(v for v in values if v))


def build_filter_options(
    records: Sequence[AnalyticRecord],
    stages: Optional[StageRules] = None,
) -> Dict[str, List[str]]:
    """Distinct non-empty values per filterable field, each in its natural order."""
    stages = stages or StageRules.from_config()

    def values(attr: str) -> List[str]:
        return _distinct(getattr(r, attr) for r in records)

    options: Dict[str, List[str]] = {}
    for key, attr in FILTER_FIELDS.items():
        options[key] = sorted(values(attr))

    options["months"] = sorted(values("expected_close_month"), key=lambda m: _MONTH_ORDER.get(m, 13))
    options["stages"] = sorted(values("stage"), key=_stage_sort_key(stages.order))
    options["probabilities"] = sorted(
        values("probability"), key=lambda p: parse_probability(p).numeric,
    )
    present = {commitment_bucket(r.commitment_count) for r in records}
    options["commitment_counts"] = [b for b in COMMITMENT_BUCKETS if b in present]
    return options


def filter_records(
    records: Sequence[AnalyticRecord],
    selections: Mapping[str, Iterable[Any]],
) -> List[AnalyticRecord]:
    """Keep records matching every non-empty selection.

    Selection keys are the keys of build_filter_options(); values are the
    accepted option values for that field.
    """
    active: Dict[str, set] = {}
    for key, selected in selections.items():
        chosen = {str(v) for v in (selected or [])}
        if not chosen:
            continue
        if key not in FILTER_FIELDS and key != "commitment_counts":
            logger.warning("Ignoring unknown filter field '%s'", key)
            continue
        active[key] = chosen

    def matches(record: AnalyticRecord) -> bool:
        for key, chosen in active.items():
            if key == "commitment_counts":
                value = commitment_bucket(record.commitment_count)
            else:
                value = getattr(record, FILTER_FIELDS[key])
            if value not in chosen:
                return False
        return True

    return [r for r in records if matches(r)]
