"""
Commitment Indexer
==================
Groups commitment/action rows by the opportunity they reference.

Commitments without an opportunity id are dropped. There is deliberately no
fallback match on account id: an action logged against an account but not an
opportunity does not count as coverage of any opportunity.
"""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping

from analytics.lib.config import DEFAULT_CONFIG
from analytics.lib.logger import setup_logger
from analytics.lib.normalize import read_field

logger = setup_logger("commitment_index")


def build_commitment_index(
    commitments: Iterable[Mapping[str, Any]],
    columns: Mapping[str, Any] = None,
) -> Dict[str, List[Mapping[str, Any]]]:
    """Map opportunity id -> commitments referencing it, in input order."""
    columns = columns or DEFAULT_CONFIG["commitment_columns"]
    id_column = columns["opportunity_id"]

    index: Dict[str, List[Mapping[str, Any]]] = {}
    dropped = 0
    for commitment in commitments:
        opp_id = read_field(commitment, id_column)
        if not opp_id:
            dropped += 1
            continue
        index.setdefault(opp_id, []).append(commitment)

    logger.debug(
        "Indexed commitments for %d opportunities (%d without opportunity id dropped)",
        len(index), dropped,
    )
    return index
