# src/medicao_obra/utils/utils_code.py
from __future__ import annotations

import re
from typing import Iterable, List, Tuple

from ..errors import InvalidCodeError

_SEGMENTO = re.compile(r"\d+")


def norm_item_code(x: object) -> str:
    """
    Normaliza o código hierárquico do item (coluna "Item" da planilha):
      - strip de espaços e de ponto final solto ("1.2." -> "1.2")
      - remove zeros à esquerda de cada segmento ("01.02.003" -> "1.2.3")
      - exige segmentos totalmente numéricos e positivos

    Exemplos:
      " 1.2 "     -> "1.2"
      "01.02.003" -> "1.2.3"
      "1.10"      -> "1.10"      (não é o mesmo que "1.1")
      "1.a"       -> InvalidCodeError
      "1..2"      -> InvalidCodeError
      "0.1"       -> InvalidCodeError
    """
    if x is None:
        raise InvalidCodeError(x, "vazio")

    s = str(x).strip().rstrip(".")
    if s == "" or s.lower() in ("nan", "none"):
        raise InvalidCodeError(x, "vazio")

    norm_parts = []
    for p in s.split("."):
        p = p.strip()
        if not _SEGMENTO.fullmatch(p):
            raise InvalidCodeError(x, f"segmento não numérico {p!r}")
        n = int(p)
        if n <= 0:
            raise InvalidCodeError(x, "segmentos começam em 1")
        norm_parts.append(str(n))
    return ".".join(norm_parts)


def code_level(code: str) -> int:
    """Nível = quantidade de segmentos ("1" -> 1, "1.2.3" -> 3)."""
    return len(code.split(".")) if code else 1


def code_key(code: str) -> Tuple[int, ...]:
    """Chave de ordenação numérica: "1.2" < "1.10" e "2" < "10"."""
    return tuple(int(p) for p in code.split("."))


def sort_codes(codes: Iterable[str]) -> List[str]:
    return sorted(codes, key=code_key)


def parent_code(code: str) -> str | None:
    """Pai imediato pelo prefixo ("1.2.3" -> "1.2"); None no 1º nível."""
    if "." not in code:
        return None
    return code.rsplit(".", 1)[0]


def is_ancestor(ancestor: str, code: str) -> bool:
    return code.startswith(ancestor + ".")
