from __future__ import annotations

import re
import unicodedata
import pandas as pd


def strip_accents(s: str) -> str:
    return unicodedata.normalize("NFKD", s).encode("ascii", "ignore").decode()


def norm_text(s: str | float | int | None) -> str:
    """
    Normaliza texto para comparações (cabeçalhos de planilha, rótulos):
    - converte para string
    - remove acentos
    - lower/casefold
    - remove pontuação/ruído
    - colapsa múltiplos espaços
    """
    if not isinstance(s, str):
        s = "" if s is None or (isinstance(s, float) and pd.isna(s)) else str(s)
    s = strip_accents(s).casefold()
    s = re.sub(r"[^a-z0-9\s]", " ", s)
    s = re.sub(r"\s+", " ", s).strip()
    return s


def parse_number(v: object) -> float:
    """
    Converte valores de planilha em float:
    - números passam direto (NaN -> 0.0)
    - strings no formato brasileiro: "1.234,56" -> 1234.56, "R$ 10,5" -> 10.5
    - strings com ponto decimal simples: "12.5" -> 12.5
    - vazio/inválido -> 0.0
    """
    if v is None:
        return 0.0
    if isinstance(v, bool):
        return float(v)
    if isinstance(v, (int, float)):
        return 0.0 if pd.isna(v) else float(v)

    s = str(v).strip()
    if not s or s.lower() in ("nan", "none", "-"):
        return 0.0

    s = re.sub(r"[^0-9,.\-]", "", s)
    if "," in s:
        # milhar com ponto, decimal com vírgula
        s = s.replace(".", "").replace(",", ".")
    elif s.count(".") > 1:
        s = s.replace(".", "")
    try:
        return float(s)
    except ValueError:
        return 0.0


def parse_flag(v: object) -> bool:
    """Marcadores de sim/não da planilha ("sim", "x", "1", True)."""
    if isinstance(v, bool):
        return v
    if v is None or (isinstance(v, float) and pd.isna(v)):
        return False
    if isinstance(v, (int, float)):
        return v != 0
    return norm_text(v) in ("sim", "s", "x", "1", "true", "yes", "adm", "adm local")
