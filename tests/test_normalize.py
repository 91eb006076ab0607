"""Tests for field normalization."""

from datetime import date, datetime

import pytest

from analytics.lib.config import NO_COMMITMENT
from analytics.lib.normalize import (
    EMPTY_DATE,
    EMPTY_PROBABILITY,
    ParsedDate,
    extract_sequence_number,
    parse_currency,
    parse_date,
    parse_probability,
    read_field,
    read_raw,
    resolve_performer,
    trim,
)

PERFORMER_FIELDS = ["Usuario", "Responsavel", "Usuário Ação"]


class TestTrim:
    def test_none_is_empty_string(self):
        assert trim(None) == ""

    def test_strips_whitespace(self):
        assert trim("  Alice \t") == "Alice"

    def test_integral_float_loses_decimal(self):
        assert trim(12345.0) == "12345"

    def test_nan_is_empty(self):
        assert trim(float("nan")) == ""


class TestReadField:
    def test_single_column(self):
        assert read_field({"Conta": " Acme "}, "Conta") == "Acme"

    def test_missing_column(self):
        assert read_field({}, "Conta") == ""

    def test_candidate_columns_first_non_empty_wins(self):
        row = {"Data": "", "Data de Criação": "01/02/2024", "Data Criação": "05/05/2024"}
        assert read_field(row, ["Data", "Data de Criação", "Data Criação"]) == "01/02/2024"

    def test_candidate_columns_all_blank(self):
        assert read_raw({"Data": "  "}, ["Data", "Data Criação"]) is None


class TestParseDate:
    def test_day_month_year(self):
        assert parse_date("15/03/2024") == ParsedDate("March", "2024", 3)

    def test_stray_characters_in_month_and_year(self):
        assert parse_date("15/ 03 /2024.") == ParsedDate("March", "2024", 3)

    @pytest.mark.parametrize("raw", [
        "15/13/2024",
        "15/00/2024",
        "15/03/24",
        "15/03/1999",
        "15/03/2101",
        "2024-03-15",
        "15/03",
        "15/03/2024 10:00",
        "",
        None,
    ])
    def test_invalid_yields_empty_sentinel(self, raw):
        assert parse_date(raw) == EMPTY_DATE

    def test_boundary_years_accepted(self):
        assert parse_date("01/01/2000").year == "2000"
        assert parse_date("31/12/2100").year == "2100"

    def test_native_datetime(self):
        assert parse_date(datetime(2024, 7, 1, 9, 30)) == ParsedDate("July", "2024", 7)
        assert parse_date(date(2023, 12, 25)).month == "December"

    def test_native_date_out_of_range(self):
        assert parse_date(date(1995, 1, 1)) == EMPTY_DATE


class TestParseProbability:
    def test_percent_string(self):
        prob = parse_probability("75%")
        assert prob.display == "75%"
        assert prob.numeric == 75

    def test_strips_non_digits(self):
        assert parse_probability(" 90 % ").numeric == 90

    def test_native_number(self):
        assert parse_probability(80.0).display == "80%"

    def test_native_fraction_is_a_ratio(self):
        assert parse_probability(0.75) == parse_probability("75%")
        assert parse_probability(0.9).numeric == 90
        assert parse_probability(0.0).numeric == 0

    def test_native_number_rounds(self):
        assert parse_probability(79.6).numeric == 80

    def test_unparseable(self):
        assert parse_probability("high") == EMPTY_PROBABILITY
        assert parse_probability(None) == EMPTY_PROBABILITY


class TestParseCurrency:
    def test_brazilian_format(self):
        assert parse_currency("1.234,56") == pytest.approx(1234.56)

    def test_thousands_only(self):
        assert parse_currency("1.000") == 1000.0

    def test_trailing_garbage_is_ignored(self):
        assert parse_currency("12,5 mil") == 12.5

    def test_native_numbers(self):
        assert parse_currency(1500) == 1500.0
        assert parse_currency(99.9) == 99.9

    @pytest.mark.parametrize("raw", ["", None, "abc", "R$ 1.000,00", float("nan"), float("inf")])
    def test_unparseable_is_zero(self, raw):
        assert parse_currency(raw) == 0.0


class TestExtractSequenceNumber:
    def test_digits_concatenated(self):
        assert extract_sequence_number("OPP-2024-0101") == 20240101

    def test_simple_id(self):
        assert extract_sequence_number("OPP101") == 101

    def test_no_digits(self):
        assert extract_sequence_number("ABC") == 0
        assert extract_sequence_number(None) == 0


class TestResolvePerformer:
    def test_first_field(self):
        assert resolve_performer({"Usuario": "Alice", "Responsavel": "Bob"}, PERFORMER_FIELDS) == "Alice"

    def test_falls_through_blank_fields(self):
        row = {"Usuario": " ", "Responsavel": "", "Usuário Ação": "Carla"}
        assert resolve_performer(row, PERFORMER_FIELDS) == "Carla"

    def test_sentinel_when_all_blank(self):
        assert resolve_performer({"Usuario": None}, PERFORMER_FIELDS) == NO_COMMITMENT

    def test_single_field_name(self):
        assert resolve_performer({"Usuario": "Alice"}, "Usuario") == "Alice"
