import pandas as pd
import pytest

from medicao_obra.adapters.planilha import load_budget_tree, load_planilha
from medicao_obra.errors import InvalidCodeError, PlanilhaInvalidaError


@pytest.fixture
def xlsx_orcamento(tmp_path):
    path = tmp_path / "orcamento.xlsx"
    dados = pd.DataFrame([
        ["1", "", "", "SERVIÇOS PRELIMINARES", "", None, None, ""],
        ["1.1", "98524", "SINAPI", "Limpeza do terreno", "m2", 10, 100.5, ""],
        ["1.2", "C0001", "PRÓPRIO", "Engenheiro civil", "mês", 2, 50, "SIM"],
        ["1.10", "", "", "Placa de obra", "un", 1, 300, ""],
        ["A", "", "", "linha sem código válido", "", 1, 1, ""],
        ["", "", "", "TOTAL", "", None, None, ""],
    ], columns=["Item", "Código", "Banco", "Descrição", "Und", "Quant.", "Valor Unit", "Adm Local"])
    with pd.ExcelWriter(path, engine="openpyxl") as xlw:
        pd.DataFrame([["PLANILHA ORÇAMENTÁRIA - OBRA TESTE"]]).to_excel(
            xlw, sheet_name="orcamento", header=False, index=False,
        )
        dados.to_excel(xlw, sheet_name="orcamento", startrow=2, index=False)
    return path


@pytest.fixture
def csv_orcamento(tmp_path):
    path = tmp_path / "orcamento.csv"
    path.write_text(
        "Item;Descrição;Und;Quantidade;Valor Unitário\n"
        "1;ESCAVAÇÃO;;;\n"
        "1.1;Escavação manual;m3;10;1.234,56\n"
        "01.02;Aterro;m3;2,5;10,00\n"
        ";;;;\n",
        encoding="utf-8",
    )
    return path


def test_le_xlsx_com_titulo_acima_do_cabecalho(xlsx_orcamento):
    rows = load_planilha(xlsx_orcamento)
    assert [r["code"] for r in rows] == ["1", "1.1", "1.2", "1.10"]
    r = rows[1]
    assert r["bank_code"] == "98524"
    assert r["bank"] == "SINAPI"
    assert r["description"] == "Limpeza do terreno"
    assert r["unit"] == "m2"
    assert r["quantity"] == pytest.approx(10)
    assert r["unit_price"] == pytest.approx(100.5)
    assert r["is_overhead"] is False
    assert rows[2]["is_overhead"] is True


def test_load_budget_tree(xlsx_orcamento):
    tree = load_budget_tree(xlsx_orcamento, "orcamento")
    assert tree.codes() == ["1", "1.1", "1.2", "1.10"]
    assert tree.get("1").value == pytest.approx(1005 + 100 + 300)
    assert tree.get("1.2").is_overhead


def test_modo_estrito(xlsx_orcamento):
    with pytest.raises(InvalidCodeError):
        load_planilha(xlsx_orcamento, strict=True)


def test_le_csv_com_numeros_brasileiros(csv_orcamento):
    rows = load_planilha(csv_orcamento)
    assert [r["code"] for r in rows] == ["1", "1.1", "1.2"]
    assert rows[1]["unit_price"] == pytest.approx(1234.56)
    assert rows[2]["quantity"] == pytest.approx(2.5)
    assert "is_overhead" not in rows[0]


def test_exigir_quantidade_descarta_subitens_zerados(tmp_path):
    path = tmp_path / "extra.csv"
    path.write_text(
        "Item;Descrição;Quantidade;Valor Unitário\n"
        "3;EXTRAS;;\n"
        "3.1;Pintura;20;5,00\n"
        "3.2;Sem quantidade;0;5,00\n",
        encoding="utf-8",
    )
    rows = load_planilha(path, exigir_quantidade=True)
    assert [r["code"] for r in rows] == ["3", "3.1"]


def test_arquivo_inexistente(tmp_path):
    with pytest.raises(PlanilhaInvalidaError):
        load_planilha(tmp_path / "nao_existe.xlsx")


def test_sem_cabecalho(tmp_path):
    path = tmp_path / "ruim.csv"
    path.write_text("a;b;c\n1;2;3\n", encoding="utf-8")
    with pytest.raises(PlanilhaInvalidaError, match="cabeçalho"):
        load_planilha(path)


def test_sem_coluna_obrigatoria(tmp_path):
    path = tmp_path / "sem_preco.csv"
    path.write_text("Item;Descrição;Quantidade\n1.1;Algo;2\n", encoding="utf-8")
    with pytest.raises(PlanilhaInvalidaError):
        load_planilha(path)


def test_sem_dados(tmp_path):
    path = tmp_path / "vazia.csv"
    path.write_text("Item;Descrição;Quantidade;Valor Unitário\n;;;\n", encoding="utf-8")
    with pytest.raises(PlanilhaInvalidaError, match="nenhum dado"):
        load_planilha(path)
