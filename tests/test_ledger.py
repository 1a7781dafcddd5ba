import logging

import pytest

from medicao_obra.errors import (
    EmptyPeriodError,
    NotALeafError,
    PeriodLockedError,
    UnknownItemCodeError,
    UnknownPeriodError,
)
from medicao_obra.ledger import MeasurementLedger
from medicao_obra.models import MeasurementPeriod

from conftest import make_tree


@pytest.fixture
def ledger(tree_simples):
    return MeasurementLedger(tree_simples)


def test_lancamento_basico(ledger):
    e = ledger.set_entry(1, "1.1", 5)
    assert e.value == pytest.approx(500)
    assert e.percentage == pytest.approx(50)
    assert ledger.cumulative_value("1", 1) == pytest.approx(500)
    assert ledger.cumulative_percentage("1", 1) == pytest.approx(25)


def test_set_entry_cria_periodo(ledger):
    assert ledger.current_sequence() is None
    ledger.set_entry(2, "1.2", 1)
    assert ledger.current_sequence() == 2
    assert ledger.period(2).name == "2ª MEDIÇÃO"
    with pytest.raises(UnknownPeriodError):
        ledger.set_entry(0, "1.2", 1)


def test_lancamento_em_pai_ou_item_inexistente(ledger):
    with pytest.raises(NotALeafError):
        ledger.set_entry(1, "1", 1)
    with pytest.raises(UnknownItemCodeError):
        ledger.set_entry(1, "7.1", 1)
    assert ledger.periods() == []


def test_lancamento_por_percentual(ledger):
    ledger.tree.set_addendum_quantity("1.1", 10)
    e = ledger.set_entry_percentage(1, "1.1", 25)
    assert e.quantity == pytest.approx(5)
    assert e.value == pytest.approx(500)
    assert e.percentage == pytest.approx(25)


def test_sobrescreve_e_limpa(ledger):
    ledger.set_entry(1, "1.1", 5)
    ledger.set_entry(1, "1.1", 2)
    assert ledger.cumulative_quantity("1.1") == pytest.approx(2)
    ledger.clear_entry(1, "1.1")
    assert ledger.cumulative_value("1.1") == 0
    ledger.clear_entry(1, "1.2")


def test_acumulado_monotonico(ledger):
    ledger.new_period()
    ledger.set_entry(1, "1.1", 2)
    ledger.new_period()
    ledger.new_period()
    ledger.set_entry(3, "1.2", 1)
    valores = [ledger.cumulative_value("1", s) for s in (1, 2, 3)]
    assert valores == pytest.approx([200, 200, 400])
    assert valores == sorted(valores)


def test_acumulado_por_sequencia_e_nao_por_insercao(tree_simples):
    ledger = MeasurementLedger(tree_simples, [MeasurementPeriod(sequence=3), MeasurementPeriod(sequence=1)])
    ledger.set_entry(3, "1.1", 4)
    ledger.set_entry(1, "1.1", 1)
    assert [p.sequence for p in ledger.periods()] == [1, 3]
    assert ledger.cumulative_quantity("1.1", 1) == pytest.approx(1)
    assert ledger.cumulative_quantity("1.1", 2) == pytest.approx(1)
    assert ledger.cumulative_quantity("1.1", 3) == pytest.approx(5)
    assert ledger.new_period().sequence == 4


def test_excedente_gera_aviso(ledger, caplog):
    ledger.set_entry(1, "1.1", 8)
    with caplog.at_level(logging.WARNING, logger="medicao_obra.ledger"):
        e = ledger.set_entry(2, "1.1", 3)
    assert e.quantity == 3
    assert "ultrapassa 100%" in caplog.text
    assert ledger.overruns(2) == [{"code": "1.1", "available": pytest.approx(2), "entered": 3.0}]
    assert ledger.overruns(1) == []


def test_sem_aviso_dentro_da_tolerancia(ledger, caplog):
    ledger.set_entry(1, "1.1", 7)
    with caplog.at_level(logging.WARNING, logger="medicao_obra.ledger"):
        ledger.set_entry(2, "1.1", 3)
    assert caplog.text == ""


def test_bloqueio(ledger):
    ledger.new_period()
    with pytest.raises(EmptyPeriodError):
        ledger.lock_period(1)
    ledger.set_entry(1, "1.1", 1)
    ledger.lock_period(1)
    assert ledger.period(1).locked

    antes = ledger.to_dict()
    with pytest.raises(PeriodLockedError):
        ledger.set_entry(1, "1.1", 2)
    with pytest.raises(PeriodLockedError):
        ledger.clear_entry(1, "1.1")
    assert ledger.to_dict() == antes

    ledger.reopen_period(1)
    ledger.set_entry(1, "1.1", 2)
    assert ledger.cumulative_quantity("1.1") == pytest.approx(2)


def test_bloquear_periodo_inexistente(ledger):
    with pytest.raises(UnknownPeriodError):
        ledger.lock_period(5)


def test_cem_por_cento_em_todas_as_folhas(rows_profunda):
    tree = make_tree(rows_profunda)
    ledger = MeasurementLedger(tree)
    for folha in tree.leaves():
        ledger.set_entry_percentage(1, folha.code, 100)
    for raiz in tree.roots():
        assert ledger.cumulative_percentage(raiz.code) == pytest.approx(100)
        assert ledger.cumulative_value(raiz.code) == pytest.approx(raiz.contract_total)


def test_period_total_com_filtro(ledger_obra):
    ledger_obra.set_entry(1, "2.1", 2)
    ledger_obra.set_entry(1, "1.1", 0.5)
    assert ledger_obra.period_total(1) == pytest.approx(125)
    assert ledger_obra.period_total(1, lambda it: not it.is_overhead) == pytest.approx(100)


def test_hierarchical_entries(ledger_obra):
    ledger_obra.set_entry(1, "2.1", 2)
    ledger_obra.set_entry(1, "2.2", 1)
    h = ledger_obra.hierarchical_entries(1)
    assert h["2"].value == pytest.approx(200)
    assert h["2"].percentage == pytest.approx(200 / 900 * 100)
    assert "1" not in h


def test_rebind_limpa_lancamentos(ledger, rows_simples):
    ledger.set_entry(1, "1.1", 1)
    nova = make_tree(rows_simples)
    ledger.rebind(nova)
    assert ledger.tree is nova
    assert ledger.period(1).entries == {}


def test_rebind_mantendo_folhas(ledger):
    ledger.set_entry(1, "1.1", 1)
    ledger.set_entry(1, "1.2", 1)
    nova = make_tree([{"code": "1"}, {"code": "1.1", "quantity": 1, "unit_price": 1}, {"code": "1.2"}, {"code": "1.2.1"}])
    ledger.rebind(nova, reset=False)
    assert list(ledger.period(1).entries) == ["1.1"]


def test_round_trip_dict(ledger, tree_simples):
    ledger.set_entry(1, "1.1", 1)
    ledger.set_entry(2, "1.2", 2)
    ledger.lock_period(1)
    copia = MeasurementLedger.from_dict(ledger.to_dict(), tree_simples)
    assert copia.to_dict() == ledger.to_dict()
    assert copia.period(1).locked
