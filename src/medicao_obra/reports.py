# src/medicao_obra/reports.py
from __future__ import annotations

from typing import Any, Dict, List, Optional

from .ledger import MeasurementLedger
from .models import MeasurementEntry, MeasurementRow


def _upto(ledger: MeasurementLedger, upto_seq: Optional[int]) -> Optional[int]:
    return ledger.current_sequence() if upto_seq is None else upto_seq


def financial_summary(ledger: MeasurementLedger, upto_seq: Optional[int] = None) -> Dict[str, Any]:
    """
    Resumo financeiro da obra até a medição `upto_seq` (padrão: a mais recente).
    Somente leitura.
    """
    tree = ledger.tree
    seq = _upto(ledger, upto_seq)
    leaves = tree.leaves()

    total_contrato = sum(it.contract_total for it in leaves)
    servicos = ledger.period_total(seq) if seq is not None and ledger.has_period(seq) else 0.0
    acumulado = 0.0
    if seq is not None:
        acumulado = sum(ledger.cumulative_value(it.code, seq) for it in leaves)

    return {
        "medicao": seq,
        "valor_total_original": sum(it.value for it in leaves),
        "total_aditivo": sum(it.addendum.value for it in leaves),
        "total_contrato": total_contrato,
        "total_administracao_local": sum(it.contract_total for it in leaves if it.is_overhead),
        "servicos_executados": servicos,
        "valor_acumulado": acumulado,
        "percentual_acumulado": (acumulado / total_contrato * 100) if total_contrato else 0.0,
    }


def measurement_rows(ledger: MeasurementLedger, seq: Optional[int] = None) -> List[MeasurementRow]:
    """Uma linha por item da planilha com a medição do período e o acumulado."""
    tree = ledger.tree
    seq = _upto(ledger, seq)
    periodo: Dict[str, MeasurementEntry] = {}
    if seq is not None and ledger.has_period(seq):
        periodo = ledger.hierarchical_entries(seq)

    rows: List[MeasurementRow] = []
    for it in tree:
        e = periodo.get(it.code) or MeasurementEntry()
        if seq is None:
            acum_qtd = acum_val = acum_pct = 0.0
        else:
            acum_qtd = ledger.cumulative_quantity(it.code, seq)
            acum_val = ledger.cumulative_value(it.code, seq)
            acum_pct = ledger.cumulative_percentage(it.code, seq)
        rows.append(MeasurementRow(
            code=it.code,
            level=it.level,
            description=it.description,
            unit=it.unit,
            is_parent=tree.is_parent(it.code),
            is_overhead=it.is_overhead,
            quantity=it.quantity,
            unit_price=it.unit_price,
            value=it.value,
            addendum_value=it.addendum.value,
            contract_total=it.contract_total,
            period_quantity=e.quantity,
            period_percentage=e.percentage,
            period_value=e.value,
            cumulative_quantity=acum_qtd,
            cumulative_value=acum_val,
            cumulative_percentage=acum_pct,
        ))
    return rows
