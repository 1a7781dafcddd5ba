# src/medicao_obra/overhead.py
from __future__ import annotations

import logging
from typing import Optional

from .errors import (
    InvalidOverheadConfigurationError,
    NoMeasuredServicesError,
    PeriodLockedError,
    UnknownPeriodError,
)
from .ledger import MeasurementLedger
from .models import MeasurementEntry, OverheadBreakdown

logger = logging.getLogger(__name__)


def _resolve_period(ledger: MeasurementLedger, period_seq: Optional[int]) -> int:
    if period_seq is None:
        period_seq = ledger.current_sequence()
        if period_seq is None:
            raise NoMeasuredServicesError()
    if not ledger.has_period(period_seq):
        raise UnknownPeriodError(period_seq)
    return period_seq


def overhead_breakdown(ledger: MeasurementLedger, period_seq: Optional[int] = None) -> OverheadBreakdown:
    """
    Números intermediários da Administração Local para a medição, sem gravar nada.
    `execution_ratio` fica None quando a fórmula não se aplica.

    Considera apenas itens folha, para não contar duas vezes o que já
    está somado nos pais.
    """
    seq = _resolve_period(ledger, period_seq)
    tree = ledger.tree
    entries = ledger.period(seq).entries

    servicos = 0.0
    total_contrato = 0.0
    total_adm = 0.0
    for item in tree.leaves():
        total_contrato += item.contract_total
        if item.is_overhead:
            total_adm += item.contract_total
            continue
        e = entries.get(item.code)
        if e is not None and e.value > 0:
            servicos += e.value

    denominador = total_contrato - total_adm
    ratio = servicos / denominador if servicos != 0 and denominador > 0 else None
    return OverheadBreakdown(
        sequence=seq,
        services_executed=servicos,
        total_contract=total_contrato,
        total_overhead=total_adm,
        denominator=denominador,
        execution_ratio=ratio,
    )


def distribute_overhead(ledger: MeasurementLedger, period_seq: Optional[int] = None) -> float:
    """
    Calcula e lança a Administração Local na medição (padrão: a mais recente).

        % execução = Serviços Executados / (Total do Contrato - Total Adm. Local)

    Cada item de Administração Local recebe:
        qtd = valor = % execução × total contrato do item;  % = % execução × 100

    Sobrescreve lançamentos anteriores desses itens na mesma medição.
    Retorna a fração de execução (0–1, sem limitar).
    """
    b = overhead_breakdown(ledger, period_seq)
    seq = b["sequence"]

    if b["services_executed"] == 0:
        raise NoMeasuredServicesError(seq)
    if b["denominator"] <= 0:
        raise InvalidOverheadConfigurationError(b["total_contract"], b["total_overhead"])
    if ledger.period(seq).locked:
        raise PeriodLockedError(seq)

    tree = ledger.tree
    for pai in tree.parents():
        if pai.is_overhead and not all(f.is_overhead for f in tree.descendant_leaves(pai.code)):
            logger.warning(
                f"Item {pai.code!r} está marcado como Administração Local, mas possui "
                "subitens sem a marcação; só as folhas marcadas recebem o rateio."
            )

    ratio = b["services_executed"] / b["denominator"]
    itens_adm = [it for it in tree.leaves() if it.is_overhead]
    for item in itens_adm:
        total = ratio * item.contract_total
        ledger.write_entry(
            seq,
            item.code,
            MeasurementEntry(quantity=total, percentage=ratio * 100, value=total),
        )

    logger.info(
        f"Administração Local calculada na {seq}ª medição! Porcentagem de execução: "
        f"{ratio * 100:.2f}% ({len(itens_adm)} item(ns))."
    )
    return ratio
