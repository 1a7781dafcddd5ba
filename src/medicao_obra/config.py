# src/medicao_obra/config.py
from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path

# Folga numérica ao comparar quantidade medida x disponível
DEFAULT_TOLERANCIA = 1e-9
DEFAULT_ESTADO = Path("data") / "estado.json"
DEFAULT_OUTPUT = Path("output")
DEFAULT_LOG_LEVEL = "INFO"


@dataclass(frozen=True)
class Settings:
    tolerancia: float = DEFAULT_TOLERANCIA
    estado: Path = DEFAULT_ESTADO
    output_dir: Path = DEFAULT_OUTPUT
    log_level: str = DEFAULT_LOG_LEVEL


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw.replace(",", "."))
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """
    Lê as variáveis de ambiente uma única vez:
      MEDICAO_TOLERANCIA, MEDICAO_ESTADO, MEDICAO_OUTPUT, MEDICAO_LOG_LEVEL
    """
    return Settings(
        tolerancia=_env_float("MEDICAO_TOLERANCIA", DEFAULT_TOLERANCIA),
        estado=Path(os.environ.get("MEDICAO_ESTADO") or DEFAULT_ESTADO),
        output_dir=Path(os.environ.get("MEDICAO_OUTPUT") or DEFAULT_OUTPUT),
        log_level=(os.environ.get("MEDICAO_LOG_LEVEL") or DEFAULT_LOG_LEVEL).upper(),
    )
