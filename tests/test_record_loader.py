"""Tests for loading CSV / XLSX / JSON exports."""

import json
from datetime import datetime

import pytest
from openpyxl import Workbook

from analytics.aggregation import summarize_kpis
from analytics.join_engine import unfold_opportunities
from analytics.lib.errors import RecordLoadError
from analytics.record_loader import detect_separator, load_records, parse_csv_text


class TestDetectSeparator:
    def test_semicolon_wins(self):
        assert detect_separator("a;b,c\n1;2,3") == ";"

    def test_tab(self):
        assert detect_separator("a\tb\n1\t2") == "\t"

    def test_comma_default(self):
        assert detect_separator("a,b\n1,2") == ","
        assert detect_separator("") == ","


class TestParseCsvText:
    def test_rows_keyed_by_header(self):
        records = parse_csv_text("Oportunidade ID;Conta\nOPP1; Acme \nOPP2;Beta\n")
        assert records == [
            {"Oportunidade ID": "OPP1", "Conta": "Acme"},
            {"Oportunidade ID": "OPP2", "Conta": "Beta"},
        ]

    def test_skips_blank_and_single_field_rows(self):
        records = parse_csv_text("a,b\n\n1,2\nlonely\n;\n3,4\n")
        assert [r["a"] for r in records] == ["1", "3"]

    def test_short_rows_padded(self):
        records = parse_csv_text("a;b;c\n1;2\n")
        assert records == [{"a": "1", "b": "2", "c": ""}]

    def test_quoted_separator(self):
        records = parse_csv_text('a,b\n"1,5",x\n')
        assert records[0]["a"] == "1,5"


class TestLoadRecords:
    def test_csv_cp1252(self, tmp_path):
        path = tmp_path / "oportunidades.csv"
        path.write_bytes("Oportunidade ID;Conta;Valor Previsto\nOPP1;Ação Ltda;1.000,00\n".encode("cp1252"))
        records = load_records(path)
        assert records == [
            {"Oportunidade ID": "OPP1", "Conta": "Ação Ltda", "Valor Previsto": "1.000,00"},
        ]

    def test_csv_utf8_bom(self, tmp_path):
        path = tmp_path / "compromissos.csv"
        path.write_text("Oportunidade ID,Usuário Ação\nOPP1,Dora\n", encoding="utf-8-sig")
        records = load_records(path)
        assert records[0]["Oportunidade ID"] == "OPP1"
        assert records[0]["Usuário Ação"] == "Dora"

    def test_json_list_and_results_wrapper(self, tmp_path):
        rows = [{"Oportunidade ID": "OPP1"}, {"Oportunidade ID": "OPP2"}]
        plain = tmp_path / "plain.json"
        wrapped = tmp_path / "wrapped.json"
        plain.write_text(json.dumps(rows), encoding="utf-8")
        wrapped.write_text(json.dumps({"results": rows}), encoding="utf-8")
        assert load_records(plain) == rows
        assert load_records(wrapped) == rows

    def test_xlsx_all_sheets(self, tmp_path):
        workbook = Workbook()
        first = workbook.active
        first.title = "2023"
        first.append(["Oportunidade ID", "Valor Previsto", "Previsão de Fechamento"])
        first.append(["OPP1", 1500.5, datetime(2023, 5, 10)])
        first.append([None, None, None])
        second = workbook.create_sheet("2024")
        second.append(["Oportunidade ID", "Valor Previsto"])
        second.append(["OPP2", 99])
        path = tmp_path / "oportunidades.xlsx"
        workbook.save(path)

        records = load_records(path)
        assert [r["Oportunidade ID"] for r in records] == ["OPP1", "OPP2"]
        assert records[0]["Valor Previsto"] == 1500.5
        assert records[0]["Previsão de Fechamento"] == datetime(2023, 5, 10)

    def test_xlsx_percent_cells_read_as_percentages(self, tmp_path):
        workbook = Workbook()
        sheet = workbook.active
        sheet.append(["Oportunidade ID", "Conta ID", "Etapa", "Prob.", "Valor Previsto"])
        sheet.append(["OPP1", "A1", "Negociação", 0.9, 2000])
        sheet["D2"].number_format = "0%"
        path = tmp_path / "oportunidades.xlsx"
        workbook.save(path)

        records = load_records(path)
        assert records[0]["Prob."] == 90
        assert records[0]["Valor Previsto"] == 2000

        joined = unfold_opportunities(records, {})
        assert joined.records[0].probability == "90%"
        kpis = summarize_kpis(joined.records)
        assert kpis["hot_opportunities"] == 1
        assert kpis["forecast_value"] == 2000.0

    def test_missing_file(self, tmp_path):
        with pytest.raises(RecordLoadError) as exc_info:
            load_records(tmp_path / "missing.csv")
        assert exc_info.value.code == "RECORD_LOAD_FAILED"

    def test_unsupported_suffix(self, tmp_path):
        path = tmp_path / "export.txt"
        path.write_text("a,b\n1,2\n", encoding="utf-8")
        with pytest.raises(RecordLoadError):
            load_records(path)

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(RecordLoadError):
            load_records(path)
