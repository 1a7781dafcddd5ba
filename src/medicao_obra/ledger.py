# src/medicao_obra/ledger.py
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Mapping, Optional

from .config import get_settings
from .errors import (
    EmptyPeriodError,
    NotALeafError,
    PeriodLockedError,
    UnknownPeriodError,
)
from .models import BudgetItem, MeasurementEntry, MeasurementPeriod, OverrunWarning
from .rollup import rollup_period
from .tree import BudgetTree
from .utils.utils_code import sort_codes

logger = logging.getLogger(__name__)

ItemPredicate = Callable[[BudgetItem], bool]


class MeasurementLedger:
    """
    Sequência de medições (1ª, 2ª, ...) de uma obra.

    Cada período guarda, por item folha, a quantidade executada e o % e o
    valor derivados dela no momento do lançamento. A quantidade é a fonte
    da verdade: se o item mudar depois (aditivo, preço), os lançamentos já
    feitos não são recalculados.

    Toda consulta acumulada percorre os períodos em ordem de `sequence`.
    """

    def __init__(self, tree: BudgetTree, periods: Optional[List[MeasurementPeriod]] = None) -> None:
        self.tree = tree
        self._periods: Dict[int, MeasurementPeriod] = {}
        for p in periods or []:
            self._periods[p.sequence] = p

    # ---------- períodos ----------

    def periods(self) -> List[MeasurementPeriod]:
        return [self._periods[s] for s in sorted(self._periods)]

    def period(self, sequence: int) -> MeasurementPeriod:
        try:
            return self._periods[sequence]
        except KeyError:
            raise UnknownPeriodError(sequence) from None

    def has_period(self, sequence: int) -> bool:
        return sequence in self._periods

    def current_sequence(self) -> Optional[int]:
        """Medição mais recente (maior sequência) ou None se não houver."""
        return max(self._periods) if self._periods else None

    def new_period(self) -> MeasurementPeriod:
        seq = (self.current_sequence() or 0) + 1
        p = MeasurementPeriod(sequence=seq)
        self._periods[seq] = p
        logger.info(f"{p.name} criada.")
        return p

    def _ensure_period(self, sequence: int) -> MeasurementPeriod:
        if sequence < 1:
            raise UnknownPeriodError(sequence)
        if sequence not in self._periods:
            self._periods[sequence] = MeasurementPeriod(sequence=sequence)
        return self._periods[sequence]

    def _writable(self, sequence: int) -> MeasurementPeriod:
        if sequence in self._periods and self._periods[sequence].locked:
            raise PeriodLockedError(sequence)
        return self._ensure_period(sequence)

    def lock_period(self, sequence: int) -> MeasurementPeriod:
        """
        Bloqueia a medição. Exige ao menos um lançamento; excedentes de
        quantidade só geram aviso no log.
        """
        p = self.period(sequence)
        tem_dados = any(
            e.quantity > 0 or e.percentage > 0 or e.value > 0 for e in p.entries.values()
        )
        if not tem_dados:
            raise EmptyPeriodError(sequence)
        for w in self.overruns(sequence):
            logger.warning(
                f"[{p.name}] Item {w['code']} ultrapassa 100%: disponível "
                f"{w['available']:.2f}, medido {w['entered']:.2f}."
            )
        p.locked = True
        logger.info(f"{p.name} bloqueada ({len(p.entries)} itens).")
        return p

    def reopen_period(self, sequence: int) -> MeasurementPeriod:
        p = self.period(sequence)
        p.locked = False
        logger.info(f"{p.name} reaberta.")
        return p

    # ---------- lançamentos ----------

    def _leaf(self, code: str) -> BudgetItem:
        item = self.tree.get(code)
        if self.tree.is_parent(code):
            raise NotALeafError(code)
        return item

    def set_entry(self, period_seq: int, item_code: str, quantity: float) -> MeasurementEntry:
        """
        Grava (ou sobrescreve) a quantidade executada do item no período.
        % = qtd / (qtd contratada + aditivada) × 100; valor = qtd × preço unitário.
        """
        item = self._leaf(item_code)
        period = self._writable(period_seq)

        quantity = float(quantity)
        total_qtd = item.total_quantity
        entry = MeasurementEntry(
            quantity=quantity,
            percentage=(quantity / total_qtd * 100) if total_qtd > 0 else 0.0,
            value=quantity * item.unit_price,
        )
        period.entries[item_code] = entry

        anterior = self._quantity_before(item_code, period_seq)
        disponivel = total_qtd - anterior
        if quantity > disponivel + get_settings().tolerancia:
            logger.warning(
                f"[{period.name}] Quantidade informada para {item_code} ultrapassa 100% do item. "
                f"Disponível: {disponivel:.2f}, informado: {quantity:.2f}."
            )
        return entry

    def set_entry_percentage(self, period_seq: int, item_code: str, percentage: float) -> MeasurementEntry:
        """Lançamento pela coluna %: converte para quantidade e grava."""
        item = self._leaf(item_code)
        return self.set_entry(period_seq, item_code, float(percentage) / 100 * item.total_quantity)

    def clear_entry(self, period_seq: int, item_code: str) -> None:
        period = self._writable(period_seq)
        period.entries.pop(item_code, None)

    def write_entry(self, period_seq: int, item_code: str, entry: MeasurementEntry) -> None:
        """Grava um lançamento já calculado (usado pela Administração Local)."""
        self._leaf(item_code)
        self._writable(period_seq).entries[item_code] = entry

    # ---------- consultas ----------

    def _leaf_codes(self, item_code: str) -> List[str]:
        self.tree.get(item_code)
        if self.tree.is_leaf(item_code):
            return [item_code]
        return [it.code for it in self.tree.descendant_leaves(item_code)]

    def _sum(self, item_code: str, upto_seq: Optional[int], campo: str, incluir_ate: bool = True) -> float:
        codes = self._leaf_codes(item_code)
        total = 0.0
        for p in self.periods():
            if upto_seq is not None:
                if p.sequence > upto_seq or (not incluir_ate and p.sequence == upto_seq):
                    break
            for code in codes:
                e = p.entries.get(code)
                if e is not None:
                    total += getattr(e, campo)
        return total

    def _quantity_before(self, item_code: str, period_seq: int) -> float:
        """Quantidade medida nas medições de sequência menor que `period_seq`."""
        return self._sum(item_code, period_seq, "quantity", incluir_ate=False)

    def cumulative_value(self, item_code: str, upto_seq: Optional[int] = None) -> float:
        """Valor medido acumulado até a medição `upto_seq` (inclusive)."""
        return self._sum(item_code, upto_seq, "value")

    def cumulative_quantity(self, item_code: str, upto_seq: Optional[int] = None) -> float:
        return self._sum(item_code, upto_seq, "quantity")

    def cumulative_percentage(self, item_code: str, upto_seq: Optional[int] = None) -> float:
        item = self.tree.get(item_code)
        denom = item.quantity * item.unit_price + item.addendum.value
        if denom == 0:
            return 0.0
        return self.cumulative_value(item_code, upto_seq) / denom * 100

    def period_total(self, seq: int, predicate: Optional[ItemPredicate] = None) -> float:
        """Soma dos valores lançados no período (opcionalmente filtrando itens)."""
        total = 0.0
        for code, e in self.period(seq).entries.items():
            if code not in self.tree:
                continue
            if predicate is not None and not predicate(self.tree.get(code)):
                continue
            total += e.value
        return total

    def hierarchical_entries(self, seq: int) -> Dict[str, MeasurementEntry]:
        """Lançamentos do período com os pais somados a partir das folhas."""
        return rollup_period(self.tree, self.period(seq).entries)

    def overruns(self, seq: int) -> List[OverrunWarning]:
        """Itens cuja quantidade acumulada passa do contratado + aditivado."""
        tol = get_settings().tolerancia
        out: List[OverrunWarning] = []
        entries = self.period(seq).entries
        for code in sort_codes(entries):
            e = entries[code]
            if code not in self.tree or self.tree.is_parent(code):
                continue
            item = self.tree.get(code)
            disponivel = item.total_quantity - self._quantity_before(code, seq)
            if e.quantity > disponivel + tol:
                out.append(OverrunWarning(code=code, available=disponivel, entered=e.quantity))
        return out

    # ---------- reimportação ----------

    def rebind(self, tree: BudgetTree, reset: bool = True) -> None:
        """
        Troca a planilha após uma reimportação.
        reset=True (padrão) limpa todos os lançamentos; reset=False mantém os
        lançamentos cujos códigos continuam sendo folhas na nova planilha.
        """
        self.tree = tree
        descartados = 0
        for p in self._periods.values():
            if reset:
                descartados += len(p.entries)
                p.entries = {}
                continue
            keep = {c: e for c, e in p.entries.items() if c in tree and tree.is_leaf(c)}
            descartados += len(p.entries) - len(keep)
            p.entries = keep
        logger.info(
            f"Planilha substituída; {descartados} lançamento(s) de medição descartado(s)."
        )

    # ---------- serialização ----------

    def to_dict(self) -> Dict[str, Any]:
        return {"periods": [p.to_dict() for p in self.periods()]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], tree: BudgetTree) -> "MeasurementLedger":
        return cls(tree, [MeasurementPeriod.from_dict(d) for d in data.get("periods", [])])

    def __repr__(self) -> str:
        return f"MeasurementLedger({len(self._periods)} medições)"
