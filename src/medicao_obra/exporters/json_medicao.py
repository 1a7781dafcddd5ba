# src/medicao_obra/exporters/json_medicao.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional
import json

from ..models import MeasurementRow


def export_medicao_json(
    rows: List[MeasurementRow],
    path: str | Path,
    *,
    resumo: Optional[Dict[str, Any]] = None,
    indent: int = 2,
    ensure_ascii: bool = False,
    meta: Optional[Dict[str, Any]] = None,
) -> Path:
    """
    Salva um JSON com a planilha de medição (uma linha por item).

    Formato:
    {
      "total_itens": <int>,
      "itens": [ ... ],
      "resumo": { ... },            # opcional
      "meta": { ... }               # opcional
    }
    """
    out = Path(path)
    out.parent.mkdir(parents=True, exist_ok=True)

    payload: Dict[str, Any] = {
        "total_itens": len(rows),
        "itens": rows,
    }
    if resumo:
        payload["resumo"] = resumo
    if meta:
        payload["meta"] = meta

    with open(out, "w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=ensure_ascii, indent=indent)

    return out
