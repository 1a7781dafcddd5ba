import pytest

from medicao_obra.models import MeasurementEntry
from medicao_obra.rollup import numeric_sort, recompute, rollup_period
from medicao_obra.tree import BudgetTree

from conftest import make_tree


def test_exemplo_basico(tree_simples):
    pai = tree_simples.get("1")
    assert pai.quantity == pytest.approx(15)
    assert pai.value == pytest.approx(2000)
    assert pai.contract_total == pytest.approx(2000)
    assert pai.unit_price == pytest.approx(2000 / 15)


def test_tres_niveis_com_aditivo(rows_profunda):
    tree = make_tree(rows_profunda)
    assert tree.get("1.1.1").value == pytest.approx(417.5)
    assert tree.get("1.1.2").contract_total == pytest.approx(480)
    sub = tree.get("1.1")
    assert sub.value == pytest.approx(777.5)
    assert sub.addendum.value == pytest.approx(120)
    assert sub.contract_total == pytest.approx(897.5)
    assert sub.addendum.percentage == pytest.approx(120 / 777.5 * 100)
    raiz = tree.get("1")
    assert raiz.value == pytest.approx(777.5 + 80 + 2000)
    assert raiz.contract_total == pytest.approx(2977.5)
    # folha de 1º nível não é sobrescrita
    assert tree.get("10").value == pytest.approx(300)


def test_pai_igual_a_soma_dos_filhos_diretos(rows_profunda):
    tree = make_tree(rows_profunda)
    for pai in tree.parents():
        filhos = tree.children(pai.code)
        assert pai.value == pytest.approx(sum(f.value for f in filhos))
        assert pai.contract_total == pytest.approx(sum(f.contract_total for f in filhos))


def test_recompute_idempotente(rows_profunda):
    tree = make_tree(rows_profunda)
    antes = tree.to_dict()
    recompute(tree)
    assert tree.to_dict() == antes


def test_pai_sem_filhos_com_quantidade_mantem_preco():
    tree = make_tree([{"code": "1", "unit_price": 7}, {"code": "1.1", "quantity": 0, "unit_price": 3}])
    assert tree.get("1").quantity == 0
    assert tree.get("1").unit_price == 7


def test_pai_sem_algum_filho_direto_soma_os_existentes():
    tree = make_tree([{"code": "1"}, {"code": "1.2", "quantity": 1, "unit_price": 10}])
    assert tree.get("1").value == pytest.approx(10)


def test_numeric_sort():
    assert numeric_sort(["1.10", "1.9", "1.2", "1"]) == ["1", "1.2", "1.9", "1.10"]


def test_rollup_period(rows_profunda):
    tree = make_tree(rows_profunda)
    entries = {
        "1.1.1": MeasurementEntry(quantity=2.5, percentage=20, value=83.5),
        "1.2": MeasurementEntry(quantity=4, percentage=50, value=40),
        # lançamento em pai é ignorado
        "1.1": MeasurementEntry(quantity=99, percentage=99, value=99),
    }
    out = rollup_period(tree, entries)
    assert out["1.1"].value == pytest.approx(83.5)
    assert out["1"].value == pytest.approx(123.5)
    assert out["1"].percentage == pytest.approx(123.5 / 2977.5 * 100)
    assert "2" not in out
    # não altera o dicionário de entrada
    assert entries["1.1"].value == 99


def test_rollup_period_vazio():
    tree = make_tree([{"code": "1"}, {"code": "1.1", "quantity": 1, "unit_price": 1}])
    assert rollup_period(tree, {}) == {}


def test_arvore_vazia():
    assert len(recompute(BudgetTree())) == 0
