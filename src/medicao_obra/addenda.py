# src/medicao_obra/addenda.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .errors import NotALeafError, PeriodLockedError, UnknownPeriodError
from .models import ORIGEM_EXTRACONTRATUAL, AddendumSummaryRow, BudgetItem, MeasurementEntry
from .rollup import recompute
from .tree import BudgetTree
from .utils.utils_code import sort_codes

logger = logging.getLogger(__name__)


@dataclass
class AddendumSession:
    """Um aditivo contratual: quantidades acrescidas (ou suprimidas) por item."""
    sequence: int
    entries: Dict[str, MeasurementEntry] = field(default_factory=dict)
    locked: bool = False
    name: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            self.name = f"ADITIVO {self.sequence}"

    def total(self) -> float:
        return sum(e.value for e in self.entries.values())


class AddendumBook:
    """
    Aditivos de uma obra. O aditivo de cada item na planilha é a soma dos
    lançamentos de todas as sessões (`apply_to`).
    """

    def __init__(self, sessions: Optional[List[AddendumSession]] = None) -> None:
        self._sessions: Dict[int, AddendumSession] = {s.sequence: s for s in sessions or []}

    def sessions(self) -> List[AddendumSession]:
        return [self._sessions[s] for s in sorted(self._sessions)]

    def session(self, sequence: int) -> AddendumSession:
        try:
            return self._sessions[sequence]
        except KeyError:
            raise UnknownPeriodError(sequence) from None

    def new_session(self) -> AddendumSession:
        seq = max(self._sessions, default=0) + 1
        s = AddendumSession(sequence=seq)
        self._sessions[seq] = s
        logger.info(f"{s.name} criado.")
        return s

    def set_entry(self, tree: BudgetTree, sequence: int, item_code: str, quantity: float) -> MeasurementEntry:
        """
        Lança a quantidade aditivada (negativa = supressão).
        % sobre a quantidade base do item; valor = qtd × preço unitário.
        """
        item = tree.get(item_code)
        if tree.is_parent(item_code):
            raise NotALeafError(item_code)
        s = self.session(sequence)
        if s.locked:
            raise PeriodLockedError(sequence, tipo="aditivo")

        quantity = float(quantity)
        entry = MeasurementEntry(
            quantity=quantity,
            percentage=(quantity / item.quantity * 100) if item.quantity > 0 else 0.0,
            value=quantity * item.unit_price,
        )
        s.entries[item_code] = entry
        return entry

    def lock_session(self, sequence: int) -> AddendumSession:
        s = self.session(sequence)
        s.locked = True
        logger.info(f"{s.name} bloqueado (publicado).")
        return s

    def reopen_session(self, sequence: int) -> AddendumSession:
        s = self.session(sequence)
        s.locked = False
        return s

    def totals_by_item(self) -> Dict[str, float]:
        """Quantidade aditivada somada por item, em todas as sessões."""
        out: Dict[str, float] = {}
        for s in self.sessions():
            for code, e in s.entries.items():
                out[code] = out.get(code, 0.0) + e.quantity
        return out

    def apply_to(self, tree: BudgetTree) -> BudgetTree:
        """
        Grava no aditivo de cada folha lançada em alguma sessão a soma das
        sessões e recalcula a árvore. Folhas sem lançamento mantêm o aditivo
        que veio da planilha.
        """
        totais = self.totals_by_item()
        for item in tree.leaves():
            if item.code in totais:
                item.addendum.quantity = totais[item.code]
        orfaos = sort_codes(set(totais) - set(tree.codes()))
        if orfaos:
            logger.warning(f"Aditivos para itens inexistentes ignorados: {orfaos}")
        return recompute(tree)

    def import_extracontractual(
        self,
        tree: BudgetTree,
        sequence: int,
        rows: Iterable[Mapping[str, Any]],
    ) -> List[str]:
        """
        Itens novos (fora do contrato original) trazidos pelo aditivo
        `sequence`: entram na planilha com base zerada e toda a quantidade
        lançada neste aditivo.
        """
        s = self.session(sequence)
        if s.locked:
            raise PeriodLockedError(sequence, tipo="aditivo")
        novos = tree.merge_extracontractual(rows, addendum_sequence=sequence)
        for it in novos:
            if tree.is_leaf(it.code):
                self.set_entry(tree, sequence, it.code, it.addendum.quantity)
        self.apply_to(tree)
        return [it.code for it in novos]

    def carry_extracontractual(self, old: BudgetTree, new: BudgetTree) -> List[str]:
        """
        Reimportação da planilha base: os itens extracontratuais da planilha
        anterior não estão no arquivo novo e são copiados para `new`. Se o
        arquivo novo já traz o código, prevalece o item do arquivo.
        Recalcula `new` com os aditivos das sessões e retorna os códigos copiados.
        """
        copiados: List[str] = []
        conflitos: List[str] = []
        for it in old:
            if it.origin != ORIGEM_EXTRACONTRATUAL:
                continue
            if it.code in new:
                conflitos.append(it.code)
                continue
            new.add(BudgetItem.from_dict(it.to_dict()), _recompute=False)
            copiados.append(it.code)
        if conflitos:
            logger.warning(
                f"Itens extracontratuais substituídos por itens da nova planilha: {conflitos}"
            )
        if copiados:
            logger.info(f"{len(copiados)} item(ns) extracontratual(is) mantido(s) na reimportação.")
        self.apply_to(new)
        return copiados

    # ---------- serialização ----------

    def to_dict(self) -> Dict[str, Any]:
        return {"sessions": [asdict(s) for s in self.sessions()]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "AddendumBook":
        sessions = []
        for d in data.get("sessions", []):
            sessions.append(AddendumSession(
                sequence=int(d["sequence"]),
                entries={c: MeasurementEntry(**e) for c, e in (d.get("entries") or {}).items()},
                locked=bool(d.get("locked", False)),
                name=d.get("name", ""),
            ))
        return cls(sessions)


def _split_session(tree: BudgetTree, session: AddendumSession) -> Tuple[float, float, float]:
    acrescidos = decrescidos = extra = 0.0
    for code, e in session.entries.items():
        if not e.value:
            continue
        if code not in tree:
            logger.warning(f"[{session.name}] Item {code!r} não existe na planilha; fora do resumo.")
            continue
        if tree.get(code).origin == ORIGEM_EXTRACONTRATUAL:
            extra += e.value
        elif e.value > 0:
            acrescidos += e.value
        else:
            decrescidos += abs(e.value)
    return acrescidos, decrescidos, extra


def contract_summary(tree: BudgetTree, book: AddendumBook) -> Dict[str, Any]:
    """
    Resumo do contrato por aditivo publicado (bloqueado), em ordem de sequência:

      TOTAL GERAL DO ADITIVO = ACRESCIDOS - DECRESCIDOS + EXTRACONTRATUAIS

    Percentuais em fração do valor original (soma das folhas, sem aditivo).
    """
    valor_original = sum(it.value for it in tree.leaves())
    linhas: List[AddendumSummaryRow] = []
    acumulado = 0.0

    for s in book.sessions():
        if not s.locked:
            continue
        acrescidos, decrescidos, extra = _split_session(tree, s)
        total_geral = acrescidos - decrescidos + extra
        acumulado += total_geral
        linhas.append(AddendumSummaryRow(
            sequence=s.sequence,
            name=s.name,
            acrescidos=acrescidos,
            decrescidos=decrescidos,
            extracontratuais=extra,
            acresc_mais_extra=acrescidos + extra,
            total_geral=total_geral,
            perc_aditivo=(total_geral / valor_original) if valor_original else 0.0,
            perc_acumulado=(acumulado / valor_original) if valor_original else 0.0,
            valor_pos_aditivo=valor_original + acumulado,
        ))

    return {
        "valor_total_original": valor_original,
        "linhas": linhas,
        "valor_final_contrato": valor_original + acumulado,
    }
