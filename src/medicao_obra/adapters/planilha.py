# src/medicao_obra/adapters/planilha.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List

import pandas as pd

from ..errors import InvalidCodeError, PlanilhaInvalidaError
from ..models import RawItemRow
from ..rollup import recompute
from ..tree import BudgetTree
from ..utils.utils_code import code_level, norm_item_code
from ..utils.utils_text import norm_text, parse_flag, parse_number

logger = logging.getLogger(__name__)

# ---------- Heurísticas / normalização ----------

def _find_header_row(df_raw: pd.DataFrame, max_scan: int = 30) -> int | None:
    """Linha de cabeçalho = primeira linha com alguma célula igual a 'Item'."""
    for i in range(min(max_scan, len(df_raw))):
        row = df_raw.iloc[i].map(norm_text)
        if row.eq("item").any():
            return i
    return None

# ---------- Mapeamento de colunas ----------

_COL_CANDIDATES = {
    "code":              ("item",),
    "bank_code":         ("codigo banco", "codigo", "cod"),
    "bank":              ("banco", "base", "fonte"),
    "description":       ("descricao", "descr"),
    "unit":              ("und", "unidade", "un"),
    "quantity":          ("quantidade", "quant", "qtde", "qtd"),
    "unit_price":        ("valor unitario", "valor unit", "preco unitario", "vlr unit", "unitario"),
    "is_overhead":       ("adm local", "administracao local"),
    "addendum_quantity": ("qtd aditivo", "quantidade aditivo", "aditivo qtd"),
}

def _build_lookup(columns: Iterable[object]) -> dict[str, object]:
    return {norm_text(c): c for c in columns}

def _pick_col(lookup: dict[str, object], candidates: Iterable[str], required: bool = True) -> object | None:
    for c in candidates:
        c_norm = norm_text(c)
        if c_norm in lookup:
            return lookup[c_norm]
        for k in lookup:
            if c_norm and k.startswith(c_norm):
                return lookup[k]
    if required:
        raise KeyError(f"Não encontrei nenhuma coluna compatível com: {tuple(candidates)}")
    return None

def _read_raw(path: Path, sheet: str | int | None) -> pd.DataFrame:
    if path.suffix.lower() == ".csv":
        return pd.read_csv(
            path, header=None, dtype=str, sep=None, engine="python",
            encoding="utf-8-sig", keep_default_na=False,
        )
    xls = pd.ExcelFile(path)
    if sheet is None:
        sheet = xls.sheet_names[0]
        logger.info(f"Usando a primeira aba da planilha: {sheet!r}")
    return pd.read_excel(xls, sheet_name=sheet, header=None, dtype=str)

# ---------- Loader principal ----------

def load_planilha(
    path: str | Path,
    sheet: str | int | None = None,
    *,
    strict: bool = False,
    exigir_quantidade: bool = False,
) -> List[RawItemRow]:
    """
    Lê a planilha orçamentária (.xlsx/.csv) e devolve as linhas brutas
    para `BudgetTree.normalize`.

    - Cabeçalho: primeira linha com uma célula "Item".
    - Linhas vazias e linhas sem código de item são descartadas.
    - Código inválido: descartado com aviso (strict=False) ou InvalidCodeError.
    - exigir_quantidade=True descarta itens abaixo do 1º nível com quantidade
      zerada (importação de aditivo extracontratual).
    """
    path = Path(path)
    if not path.exists():
        raise PlanilhaInvalidaError(str(path), "arquivo não encontrado")

    df_raw = _read_raw(path, sheet)
    header_row = _find_header_row(df_raw)
    if header_row is None:
        raise PlanilhaInvalidaError(
            str(path),
            "não foi possível encontrar a linha de cabeçalho (coluna 'Item').",
        )

    df = df_raw.iloc[header_row + 1:].copy()
    df.columns = [str(c) if not pd.isna(c) else f"col_{i}" for i, c in enumerate(df_raw.iloc[header_row])]
    lookup = _build_lookup(df.columns)

    cols = {}
    try:
        cols["code"] = _pick_col(lookup, _COL_CANDIDATES["code"])
        cols["description"] = _pick_col(lookup, _COL_CANDIDATES["description"])
        cols["quantity"] = _pick_col(lookup, _COL_CANDIDATES["quantity"])
        cols["unit_price"] = _pick_col(lookup, _COL_CANDIDATES["unit_price"])
    except KeyError as e:
        raise PlanilhaInvalidaError(str(path), str(e)) from None
    for opt in ("bank_code", "bank", "unit", "is_overhead", "addendum_quantity"):
        cols[opt] = _pick_col(lookup, _COL_CANDIDATES[opt], required=False)
    mapeadas = {k: v for k, v in cols.items() if v is not None}
    logger.info(f"[{path.name}] Colunas mapeadas: {mapeadas}")

    def cell(row: pd.Series, campo: str) -> object:
        col = cols.get(campo)
        if col is None:
            return None
        v = row[col]
        return None if pd.isna(v) else v

    out: List[RawItemRow] = []
    descartadas = 0
    for _, row in df.iterrows():
        if all(pd.isna(v) or str(v).strip() == "" for v in row.values):
            continue

        raw_code = cell(row, "code")
        if raw_code is None or str(raw_code).strip() == "":
            descartadas += 1
            continue
        try:
            code = norm_item_code(raw_code)
        except InvalidCodeError:
            if strict:
                raise
            logger.warning(f"[{path.name}] Código de item inválido {raw_code!r}; linha ignorada.")
            descartadas += 1
            continue

        quantidade = parse_number(cell(row, "quantity"))
        if exigir_quantidade and quantidade <= 0 and code_level(code) != 1:
            descartadas += 1
            continue

        item: RawItemRow = {
            "code": code,
            "description": str(cell(row, "description") or "").strip(),
            "unit": str(cell(row, "unit") or "").strip(),
            "quantity": quantidade,
            "unit_price": parse_number(cell(row, "unit_price")),
            "bank_code": str(cell(row, "bank_code") or "").strip(),
            "bank": str(cell(row, "bank") or "").strip(),
        }
        if cols["is_overhead"] is not None:
            item["is_overhead"] = parse_flag(cell(row, "is_overhead"))
        if cols["addendum_quantity"] is not None:
            item["addendum_quantity"] = parse_number(cell(row, "addendum_quantity"))
        out.append(item)

    if descartadas:
        logger.warning(f"[{path.name}] {descartadas} linha(s) sem código de item válido descartada(s).")
    if not out:
        raise PlanilhaInvalidaError(str(path), "nenhum dado válido foi encontrado na planilha.")

    logger.info(f"[{path.name}] {len(out)} itens lidos.")
    return out


def load_budget_tree(path: str | Path, sheet: str | int | None = None, *, strict: bool = False) -> BudgetTree:
    """Importa a planilha, normaliza e já devolve a árvore com os totais calculados."""
    tree = BudgetTree.normalize(load_planilha(path, sheet, strict=strict))
    return recompute(tree)
