# src/medicao_obra/rollup.py
from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Dict, Iterable, List, Mapping

from .models import BudgetItem, MeasurementEntry
from .utils.utils_code import sort_codes

if TYPE_CHECKING:
    from .tree import BudgetTree

logger = logging.getLogger(__name__)


def numeric_sort(codes: Iterable[str]) -> List[str]:
    """Ordena códigos por segmento numérico ("1.2" antes de "1.10")."""
    return sort_codes(codes)


def _recompute_leaf(item: BudgetItem) -> None:
    ad = item.addendum
    item.value = item.quantity * item.unit_price
    ad.value = ad.quantity * item.unit_price
    ad.percentage = (ad.quantity / item.quantity * 100) if item.quantity > 0 else 0.0
    item.contract_total = item.value + ad.value


def recompute(tree: "BudgetTree") -> "BudgetTree":
    """
    Recalcula os totais hierárquicos da planilha (in place).

    1) Folhas: valor = qtd × preço unitário; aditivo idem; total contrato = valor + aditivo.
    2) Do nível mais profundo até o 1º nível, cada pai recebe a soma dos
       filhos DIRETOS (quantidade, valor, aditivo, total contrato) e o preço
       unitário médio ponderado (valor / quantidade, mantido se quantidade = 0).

    Sempre parte dos valores atuais dos filhos, então rodar duas vezes dá o
    mesmo resultado.
    """
    for item in tree:
        if tree.is_leaf(item.code):
            _recompute_leaf(item)

    by_level = tree.codes_by_level()
    for nivel in sorted(by_level, reverse=True):
        for code in by_level[nivel]:
            if not tree.is_parent(code):
                continue
            pai = tree.get(code)
            filhos = tree.children(code)

            pai.quantity = sum(f.quantity for f in filhos)
            pai.value = sum(f.value for f in filhos)
            pai.addendum.quantity = sum(f.addendum.quantity for f in filhos)
            pai.addendum.value = sum(f.addendum.value for f in filhos)
            pai.contract_total = sum(f.contract_total for f in filhos)
            pai.addendum.percentage = (
                pai.addendum.value / pai.value * 100 if pai.value > 0 else 0.0
            )
            if pai.quantity > 0:
                pai.unit_price = pai.value / pai.quantity

    logger.debug(f"Totais hierárquicos recalculados ({len(tree)} itens).")
    return tree


def rollup_period(
    tree: "BudgetTree",
    entries: Mapping[str, MeasurementEntry],
) -> Dict[str, MeasurementEntry]:
    """
    Visão hierárquica de um período: lançamentos das folhas + pais com a
    soma dos filhos diretos. O % do pai é calculado sobre o total contrato
    dele (não é média dos percentuais).
    """
    out: Dict[str, MeasurementEntry] = {
        code: MeasurementEntry(e.quantity, e.percentage, e.value)
        for code, e in entries.items()
        if code in tree and tree.is_leaf(code)
    }

    by_level = tree.codes_by_level()
    for nivel in sorted(by_level, reverse=True):
        for code in by_level[nivel]:
            if not tree.is_parent(code):
                continue
            qtd = 0.0
            valor = 0.0
            for filho in tree.children(code):
                dados = out.get(filho.code)
                if dados is None:
                    continue
                qtd += dados.quantity
                valor += dados.value
            if qtd == 0 and valor == 0:
                continue
            total_pai = tree.get(code).contract_total
            pct = (valor / total_pai * 100) if total_pai > 0 else 0.0
            out[code] = MeasurementEntry(quantity=qtd, percentage=pct, value=valor)

    return out
