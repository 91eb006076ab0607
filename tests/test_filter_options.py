"""Tests for filter option lists and record filtering."""

from analytics.commitment_index import build_commitment_index
from analytics.filter_options import build_filter_options, commitment_bucket, filter_records
from analytics.join_engine import unfold_opportunities


def _records(make_opportunity, make_commitment):
    opportunities = [
        make_opportunity("OPP1", stage="Negociação", probability="100%", expected_close="01/12/2024"),
        make_opportunity("OPP2", stage="Prospecção", probability="5%", expected_close="01/02/2023"),
        make_opportunity("OPP3", stage="Etapa Nova", probability="50%", expected_close="01/03/2024"),
        make_opportunity("OPP4", stage="Fechada e Ganha", probability="", expected_close=""),
    ]
    commitments = [make_commitment("OPP1", performer="Bob")] * 3 + [
        make_commitment("OPP2", performer="Alice"),
    ]
    return unfold_opportunities(opportunities, build_commitment_index(commitments)).records


class TestCommitmentBucket:
    def test_buckets(self):
        assert [commitment_bucket(n) for n in (0, 1, 2, 3, 17)] == ["0", "1", "2", "3+", "3+"]


class TestBuildFilterOptions:
    def test_domain_orderings(self, make_opportunity, make_commitment):
        options = build_filter_options(_records(make_opportunity, make_commitment))
        assert options["stages"] == ["Prospecção", "Negociação", "Fechada e Ganha", "Etapa Nova"]
        assert options["months"] == ["February", "March", "December"]
        assert options["years"] == ["2023", "2024"]
        assert options["probabilities"] == ["5%", "50%", "100%"]
        assert options["commitment_counts"] == ["0", "1", "3+"]
        assert options["performers"] == ["Alice", "Bob", "No Commitment"]

    def test_blank_values_excluded(self, make_opportunity, make_commitment):
        options = build_filter_options(_records(make_opportunity, make_commitment))
        assert "" not in options["probabilities"]
        assert options["segments"] == []


class TestFilterRecords:
    def test_every_selection_must_match(self, make_opportunity, make_commitment):
        records = _records(make_opportunity, make_commitment)
        selected = filter_records(records, {"years": ["2024"], "performers": ["Bob"]})
        assert [r.opportunity_id for r in selected] == ["OPP1"]

    def test_empty_selection_keeps_everything(self, make_opportunity, make_commitment):
        records = _records(make_opportunity, make_commitment)
        assert filter_records(records, {"years": [], "stages": None}) == records

    def test_commitment_count_buckets(self, make_opportunity, make_commitment):
        records = _records(make_opportunity, make_commitment)
        selected = filter_records(records, {"commitment_counts": ["3+"]})
        assert [r.opportunity_id for r in selected] == ["OPP1"]

    def test_unknown_field_ignored(self, make_opportunity, make_commitment):
        records = _records(make_opportunity, make_commitment)
        assert filter_records(records, {"colour": ["red"]}) == records
