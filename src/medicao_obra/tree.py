# src/medicao_obra/tree.py
from __future__ import annotations

import logging
from collections import Counter
from typing import Any, Dict, Iterable, Iterator, List, Mapping

from .errors import DuplicateCodeError, NotALeafError, UnknownItemCodeError
from .models import ORIGEM_BASE, ORIGEM_EXTRACONTRATUAL, Addendum, BudgetItem
from .rollup import recompute
from .utils.utils_code import code_level, norm_item_code, parent_code, sort_codes
from .utils.utils_text import parse_flag, parse_number

logger = logging.getLogger(__name__)


def _item_from_row(row: Mapping[str, Any] | BudgetItem, order: int) -> BudgetItem:
    if isinstance(row, BudgetItem):
        item = BudgetItem.from_dict(row.to_dict())
        item.code = norm_item_code(row.code)
    else:
        item = BudgetItem(
            code=norm_item_code(row.get("code")),
            description=str(row.get("description") or "").strip(),
            unit=str(row.get("unit") or "").strip(),
            quantity=parse_number(row.get("quantity")),
            unit_price=parse_number(row.get("unit_price")),
            is_overhead=parse_flag(row.get("is_overhead")),
            bank_code=str(row.get("bank_code") or "").strip(),
            bank=str(row.get("bank") or "").strip(),
            origin=str(row.get("origin") or ORIGEM_BASE),
            addendum=Addendum(quantity=parse_number(row.get("addendum_quantity"))),
        )
    item.level = code_level(item.code)
    if not item.order:
        item.order = order
    return item


class BudgetTree:
    """
    Planilha orçamentária de uma obra, indexada pelo código hierárquico.

    A hierarquia é derivada só dos códigos: "1.2" é filho direto de "1",
    "1.2.3" é descendente de "1" e de "1.2". Iteração sempre em ordem
    numérica dos segmentos.
    """

    def __init__(self, items: Iterable[BudgetItem] = ()) -> None:
        self._items: Dict[str, BudgetItem] = {}
        self._children: Dict[str, List[str]] | None = None
        self._prefixes: set[str] | None = None
        for item in items:
            self.add(item, _recompute=False)

    # ---------- construção ----------

    @classmethod
    def normalize(cls, raw_items: Iterable[Mapping[str, Any] | BudgetItem]) -> "BudgetTree":
        """
        Monta a árvore a partir das linhas importadas:
          - normaliza e valida os códigos (InvalidCodeError)
          - atribui nível e is_overhead=False quando ausente
          - rejeita códigos repetidos (DuplicateCodeError com todos os repetidos)

        Não calcula totais; chame `recompute` em seguida.
        """
        items = [_item_from_row(row, order=i) for i, row in enumerate(raw_items, start=1)]

        counts = Counter(it.code for it in items)
        dups = sort_codes(c for c, n in counts.items() if n > 1)
        if dups:
            raise DuplicateCodeError(dups)

        tree = cls(items)
        logger.info(f"Planilha normalizada: {len(tree)} itens, {tree.max_level()} níveis.")
        return tree

    from_rows = normalize

    # ---------- consultas estruturais ----------

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, code: object) -> bool:
        return code in self._items

    def __iter__(self) -> Iterator[BudgetItem]:
        for code in self.codes():
            yield self._items[code]

    def codes(self) -> List[str]:
        return sort_codes(self._items)

    def get(self, code: str) -> BudgetItem:
        try:
            return self._items[code]
        except KeyError:
            raise UnknownItemCodeError(code) from None

    @staticmethod
    def level(code: str) -> int:
        return code_level(code)

    def is_parent(self, code: str) -> bool:
        """True se algum outro item começa com `code + "."`."""
        return code in self._prefix_index()

    def is_leaf(self, code: str) -> bool:
        return not self.is_parent(code)

    def children(self, code: str) -> List[BudgetItem]:
        """Somente filhos diretos (um nível abaixo), em ordem numérica."""
        return [self._items[c] for c in self._children_index().get(code, [])]

    def descendant_leaves(self, code: str) -> List[BudgetItem]:
        prefix = code + "."
        return [it for it in self if it.code.startswith(prefix) and self.is_leaf(it.code)]

    def leaves(self) -> List[BudgetItem]:
        return [it for it in self if self.is_leaf(it.code)]

    def parents(self) -> List[BudgetItem]:
        return [it for it in self if self.is_parent(it.code)]

    def roots(self) -> List[BudgetItem]:
        return [it for it in self if it.level == 1]

    def max_level(self) -> int:
        return max((it.level for it in self._items.values()), default=0)

    def codes_by_level(self) -> Dict[int, List[str]]:
        out: Dict[int, List[str]] = {}
        for code in self.codes():
            out.setdefault(code_level(code), []).append(code)
        return out

    def _children_index(self) -> Dict[str, List[str]]:
        if self._children is None:
            idx: Dict[str, List[str]] = {}
            for code in self.codes():
                pai = parent_code(code)
                if pai is not None:
                    idx.setdefault(pai, []).append(code)
            self._children = idx
        return self._children

    def _prefix_index(self) -> set[str]:
        if self._prefixes is None:
            prefixes: set[str] = set()
            for code in self._items:
                pai = parent_code(code)
                while pai is not None:
                    prefixes.add(pai)
                    pai = parent_code(pai)
            self._prefixes = prefixes
        return self._prefixes

    def _invalidate(self) -> None:
        self._children = None
        self._prefixes = None

    # ---------- mutações ----------

    def add(self, item: BudgetItem, *, _recompute: bool = True) -> BudgetItem:
        item.code = norm_item_code(item.code)
        if item.code in self._items:
            raise DuplicateCodeError([item.code])
        item.level = code_level(item.code)
        self._items[item.code] = item
        self._invalidate()
        if _recompute:
            recompute(self)
        return item

    def remove(self, code: str) -> List[str]:
        """
        Exclui o item e todos os seus descendentes; os ancestrais são
        recalculados. Retorna os códigos removidos.
        """
        self.get(code)
        prefix = code + "."
        removed = [c for c in self.codes() if c == code or c.startswith(prefix)]
        for c in removed:
            del self._items[c]
        self._invalidate()

        # pai que perdeu o último filho vira folha: os totais agregados não valem mais
        pai = parent_code(code)
        while pai is not None and pai not in self._items:
            pai = parent_code(pai)
        if pai is not None and self.is_leaf(pai):
            orfao = self._items[pai]
            orfao.quantity = 0.0
            orfao.value = 0.0
            orfao.contract_total = 0.0
            orfao.addendum = Addendum()
        recompute(self)
        logger.info(f"Item {code!r} removido ({len(removed)} código(s)).")
        return removed

    def set_overhead(self, code: str, flag: bool = True) -> BudgetItem:
        """
        Marca/desmarca o item como Administração Local. Num pai (ex.: o grupo
        "ADMINISTRAÇÃO LOCAL"), a marcação vale também para todas as folhas
        abaixo dele, que são as que recebem o rateio.
        """
        item = self.get(code)
        item.is_overhead = bool(flag)
        folhas = self.descendant_leaves(code) if self.is_parent(code) else []
        for folha in folhas:
            folha.is_overhead = bool(flag)
        logger.info(
            f"Item {code!r} {'marcado como' if flag else 'desmarcado de'} Administração Local"
            + (f" ({len(folhas)} item(ns) folha)." if folhas else ".")
        )
        return item

    def set_addendum_quantity(self, code: str, quantity: float) -> BudgetItem:
        """
        Grava a quantidade aditivada de um item folha; % e valor do aditivo
        são derivados da quantidade base e do preço unitário atuais.
        """
        item = self.get(code)
        if self.is_parent(code):
            raise NotALeafError(code)
        item.addendum.quantity = float(quantity)
        recompute(self)
        return item

    def merge_extracontractual(
        self,
        rows: Iterable[Mapping[str, Any] | BudgetItem],
        addendum_sequence: int | None = None,
    ) -> List[BudgetItem]:
        """
        Inclui itens extracontratuais trazidos por um aditivo.
        Códigos já existentes na base (ou repetidos no próprio arquivo)
        bloqueiam a importação inteira. A quantidade importada vira
        quantidade aditivada; a base do item fica zerada.
        """
        base_order = max((it.order for it in self._items.values()), default=0)
        novos = [
            _item_from_row(row, order=base_order + i)
            for i, row in enumerate(rows, start=1)
        ]
        counts = Counter(it.code for it in novos)
        dups = {c for c, n in counts.items() if n > 1}
        dups |= {it.code for it in novos if it.code in self._items}
        if dups:
            raise DuplicateCodeError(sort_codes(dups))

        for it in novos:
            # todo o escopo do item novo é aditivo: base zerada
            it.origin = ORIGEM_EXTRACONTRATUAL
            it.addendum = Addendum(quantity=it.quantity + it.addendum.quantity)
            it.quantity = 0.0
            self._items[it.code] = it
        self._invalidate()
        recompute(self)
        logger.info(
            f"{len(novos)} item(ns) extracontratual(is) incluído(s)"
            + (f" pelo aditivo {addendum_sequence}." if addendum_sequence else ".")
        )
        return novos

    # ---------- serialização ----------

    def to_dict(self) -> Dict[str, Any]:
        return {"items": [it.to_dict() for it in self]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "BudgetTree":
        return cls(BudgetItem.from_dict(d) for d in data.get("items", []))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, BudgetTree):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"BudgetTree({len(self)} itens)"


__all__ = ["BudgetTree"]
