from __future__ import annotations

import pytest

from medicao_obra.ledger import MeasurementLedger
from medicao_obra.rollup import recompute
from medicao_obra.tree import BudgetTree


def make_tree(rows):
    return recompute(BudgetTree.normalize(rows))


@pytest.fixture
def rows_simples():
    return [
        {"code": "1", "description": "SERVIÇOS PRELIMINARES"},
        {"code": "1.1", "description": "Locação da obra", "unit": "m2", "quantity": 10, "unit_price": 100},
        {"code": "1.2", "description": "Tapume", "unit": "m", "quantity": 5, "unit_price": 200},
    ]


@pytest.fixture
def tree_simples(rows_simples):
    return make_tree(rows_simples)


@pytest.fixture
def rows_obra():
    """
    Contrato de 1.000,00 com 100,00 de Administração Local (itens 1.1 e 1.2).
    """
    return [
        {"code": "1", "description": "ADMINISTRAÇÃO LOCAL"},
        {"code": "1.1", "description": "Engenheiro", "unit": "mês", "quantity": 1, "unit_price": 50, "is_overhead": True},
        {"code": "1.2", "description": "Encarregado", "unit": "mês", "quantity": 1, "unit_price": 50, "is_overhead": True},
        {"code": "2", "description": "ESTRUTURA"},
        {"code": "2.1", "description": "Concreto", "unit": "m3", "quantity": 10, "unit_price": 50},
        {"code": "2.2", "description": "Forma", "unit": "m2", "quantity": 4, "unit_price": 100},
    ]


@pytest.fixture
def tree_obra(rows_obra):
    return make_tree(rows_obra)


@pytest.fixture
def ledger_obra(tree_obra):
    return MeasurementLedger(tree_obra)


@pytest.fixture
def rows_profunda():
    # 1.10 depois de 1.2; 3 níveis; preços quebrados
    return [
        {"code": "1", "description": "INFRA"},
        {"code": "1.1", "description": "Escavação"},
        {"code": "1.1.1", "quantity": 12.5, "unit_price": 33.4},
        {"code": "1.1.2", "quantity": 3, "unit_price": 120.0, "addendum_quantity": 1},
        {"code": "1.2", "quantity": 8, "unit_price": 10},
        {"code": "1.10", "quantity": 2, "unit_price": 1000},
        {"code": "2", "description": "SUPRA"},
        {"code": "2.1", "quantity": 40, "unit_price": 7.25},
        {"code": "10", "description": "LIMPEZA", "quantity": 1, "unit_price": 300},
    ]
