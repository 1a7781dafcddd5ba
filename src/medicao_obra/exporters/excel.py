# src/medicao_obra/exporters/excel.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional
import pandas as pd

from ..models import MeasurementRow

# colunas do relatório -> cabeçalho exibido
_COLUNAS = {
    "code": "Item",
    "description": "Descrição",
    "unit": "Und",
    "quantity": "Quantidade",
    "unit_price": "Valor Unitário",
    "value": "Valor Total",
    "addendum_value": "Aditivo",
    "contract_total": "Total Contrato",
    "period_quantity": "Medição Qtd",
    "period_percentage": "Medição %",
    "period_value": "Medição Valor",
    "cumulative_quantity": "Acumulado Qtd",
    "cumulative_percentage": "Acumulado %",
    "cumulative_value": "Acumulado Valor",
    "is_overhead": "Adm. Local",
}
_MOEDA = ("Valor Unitário", "Valor Total", "Aditivo", "Total Contrato", "Medição Valor", "Acumulado Valor")
_PERCENT = ("Medição %", "Acumulado %")
_QTD = ("Quantidade", "Medição Qtd", "Acumulado Qtd")


def _autofit_columns(ws) -> None:
    """Ajusta largura das colunas com base no conteúdo (openpyxl worksheet)."""
    from openpyxl.utils import get_column_letter
    for i, col in enumerate(ws.columns, start=1):
        max_len = 0
        for cell in col:
            val = cell.value
            val_str = str(val) if val is not None else ""
            if len(val_str) > max_len:
                max_len = len(val_str)
        ws.column_dimensions[get_column_letter(i)].width = min(max_len + 2, 80)


def _frame_medicao(rows: List[MeasurementRow], round_decimals: int) -> pd.DataFrame:
    if not rows:
        return pd.DataFrame(columns=list(_COLUNAS.values()))
    df = pd.DataFrame(rows)
    df = df[list(_COLUNAS)].rename(columns=_COLUNAS)
    for col in _MOEDA + _QTD:
        df[col] = pd.to_numeric(df[col], errors="coerce").round(round_decimals)
    # % na planilha vai como fração para receber o formato percentual
    for col in _PERCENT:
        df[col] = pd.to_numeric(df[col], errors="coerce") / 100
    df["Adm. Local"] = df["Adm. Local"].map({True: "SIM", False: ""})
    return df


def export_medicao_excel(
    rows: List[MeasurementRow],
    path: str | Path,
    *,
    resumo: Optional[Dict[str, Any]] = None,
    sheet_name: str = "medicao",
    round_decimals: int = 2,
    number_format_currency: str = '#,##0.00',
    number_format_percent: str = '0.00%',
) -> Path:
    """
    Gera um arquivo Excel com:
      - aba `sheet_name` (uma linha por item, pais em negrito)
      - aba 'resumo' (se `resumo` for informado): chave/valor

    Retorna o Path do arquivo gerado.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    df = _frame_medicao(rows, round_decimals)
    parents = [bool(r["is_parent"]) for r in rows]

    with pd.ExcelWriter(path, engine="openpyxl") as xlw:
        df.to_excel(xlw, sheet_name=sheet_name, index=False)
        if resumo:
            pd.DataFrame(
                [{"campo": k, "valor": v} for k, v in resumo.items()]
            ).to_excel(xlw, sheet_name="resumo", index=False)

        from openpyxl.styles import Font
        wb = xlw.book
        ws = wb[sheet_name]
        _autofit_columns(ws)

        headers = [c.value for c in next(ws.iter_rows(min_row=1, max_row=1))]
        def col_idx(hdr: str) -> Optional[int]:
            try:
                return headers.index(hdr) + 1
            except ValueError:
                return None

        moeda = [i for i in map(col_idx, _MOEDA) if i]
        pct = [i for i in map(col_idx, _PERCENT) if i]
        bold = Font(bold=True)
        for n, r in enumerate(ws.iter_rows(min_row=2)):
            for i in moeda:
                r[i-1].number_format = number_format_currency
            for i in pct:
                r[i-1].number_format = number_format_percent
            if n < len(parents) and parents[n]:
                for c in r:
                    c.font = bold

        if resumo:
            _autofit_columns(wb["resumo"])

    return path
