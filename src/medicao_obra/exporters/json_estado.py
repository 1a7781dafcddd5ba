# src/medicao_obra/exporters/json_estado.py
from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, NamedTuple

from ..addenda import AddendumBook
from ..ledger import MeasurementLedger
from ..tree import BudgetTree

logger = logging.getLogger(__name__)

FORMATO_VERSAO = 1


class EstadoObra(NamedTuple):
    tree: BudgetTree
    ledger: MeasurementLedger
    book: AddendumBook


def estado_vazio() -> EstadoObra:
    tree = BudgetTree()
    return EstadoObra(tree, MeasurementLedger(tree), AddendumBook())


def save_state(
    path: str | Path,
    tree: BudgetTree,
    ledger: MeasurementLedger,
    book: AddendumBook | None = None,
    *,
    indent: int = 2,
    ensure_ascii: bool = False,
) -> Path:
    """
    Salva planilha + medições + aditivos num único JSON.

    Formato:
    {
      "versao": 1,
      "planilha": {"items": [...]},
      "medicoes": {"periods": [...]},
      "aditivos": {"sessions": [...]}
    }
    Grava em arquivo temporário e renomeia, para não deixar JSON pela metade.
    """
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)

    payload: Dict[str, Any] = {
        "versao": FORMATO_VERSAO,
        "planilha": tree.to_dict(),
        "medicoes": ledger.to_dict(),
        "aditivos": (book or AddendumBook()).to_dict(),
    }

    with tempfile.NamedTemporaryFile(
        "w", encoding="utf-8", delete=False, dir=out.parent, suffix=".tmp"
    ) as tmp:
        json.dump(payload, tmp, ensure_ascii=ensure_ascii, indent=indent)
        tmp_path = tmp.name
    os.replace(tmp_path, out)
    logger.debug(f"Estado salvo em {out}")
    return out


def load_state(path: str | Path) -> EstadoObra:
    """Lê o JSON de `save_state`. Arquivo inexistente = obra vazia."""
    p = Path(path)
    if not p.exists():
        logger.info(f"{p} não existe; começando com uma obra vazia.")
        return estado_vazio()

    with open(p, "r", encoding="utf-8") as f:
        data = json.load(f)

    tree = BudgetTree.from_dict(data.get("planilha") or {})
    ledger = MeasurementLedger.from_dict(data.get("medicoes") or {}, tree)
    book = AddendumBook.from_dict(data.get("aditivos") or {})
    return EstadoObra(tree, ledger, book)
