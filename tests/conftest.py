"""Shared fixtures: raw export rows in the CRM's column layout."""

import os

# Keep test runs from writing daily log files.
os.environ.setdefault("LOG_TO_FILE", "false")

import pytest


@pytest.fixture
def make_opportunity():
    def _make(
        opp_id,
        account_id="A1",
        stage="Open",
        probability="50%",
        expected_close="15/03/2024",
        expected_value="1.000,00",
        closed_value="",
        **extra,
    ):
        row = {
            "Oportunidade ID": opp_id,
            "Conta ID": account_id,
            "Conta": f"Account {account_id}" if account_id else "",
            "Representante": "Rep One",
            "Responsável": "Owner One",
            "Etapa": stage,
            "Prob.": probability,
            "Previsão de Fechamento": expected_close,
            "Valor Previsto": expected_value,
            "Valor Fechado": closed_value,
        }
        row.update(extra)
        return row
    return _make


@pytest.fixture
def make_commitment():
    def _make(
        opp_id,
        performer="Alice",
        category="Visita",
        activity="Reunião",
        date="10/02/2024",
        performer_field="Usuario",
    ):
        return {
            "Oportunidade ID": opp_id,
            performer_field: performer,
            "Categoria": category,
            "Atividade": activity,
            "Data": date,
        }
    return _make
