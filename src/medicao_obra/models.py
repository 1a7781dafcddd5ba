# src/medicao_obra/models.py
from __future__ import annotations

from dataclasses import dataclass, field, asdict
from typing import Any, Dict, List, NotRequired, Optional, TypedDict


ORIGEM_BASE = "base"
ORIGEM_EXTRACONTRATUAL = "extracontratual"


# =========================
# Linha bruta vinda da importação
# =========================
class RawItemRow(TypedDict):
    """
    Linha da planilha orçamentária já lida pelo importador.
    Só `code` é obrigatório para o motor; o resto tem default.
    """
    code: str
    description: NotRequired[str]
    unit: NotRequired[str]
    quantity: NotRequired[float]
    unit_price: NotRequired[float]
    # Código no banco de referência (SINAPI, SUDECAP...) e o próprio banco
    bank_code: NotRequired[str]
    bank: NotRequired[str]
    is_overhead: NotRequired[bool]
    addendum_quantity: NotRequired[float]
    origin: NotRequired[str]


# =========================
# Itens da planilha orçamentária
# =========================
@dataclass
class Addendum:
    """Acréscimo/supressão de escopo após a assinatura (aditivo)."""
    quantity: float = 0.0
    percentage: float = 0.0
    value: float = 0.0


@dataclass
class BudgetItem:
    code: str
    description: str = ""
    unit: str = ""
    quantity: float = 0.0
    unit_price: float = 0.0
    value: float = 0.0
    addendum: Addendum = field(default_factory=Addendum)
    contract_total: float = 0.0
    is_overhead: bool = False
    level: int = 1
    bank_code: str = ""
    bank: str = ""
    origin: str = ORIGEM_BASE
    order: int = 0

    @property
    def total_quantity(self) -> float:
        """Quantidade contratada + aditivada (denominador do % medido)."""
        return self.quantity + self.addendum.quantity

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BudgetItem":
        data = dict(data)
        data["addendum"] = Addendum(**(data.get("addendum") or {}))
        return cls(**data)


# =========================
# Medições
# =========================
@dataclass
class MeasurementEntry:
    quantity: float = 0.0
    percentage: float = 0.0
    value: float = 0.0


@dataclass
class MeasurementPeriod:
    sequence: int
    entries: Dict[str, MeasurementEntry] = field(default_factory=dict)
    locked: bool = False
    name: str = ""

    def __post_init__(self) -> None:
        if not self.name:
            self.name = f"{self.sequence}ª MEDIÇÃO"

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeasurementPeriod":
        entries = {
            code: MeasurementEntry(**e) for code, e in (data.get("entries") or {}).items()
        }
        return cls(
            sequence=int(data["sequence"]),
            entries=entries,
            locked=bool(data.get("locked", False)),
            name=data.get("name", ""),
        )


# =========================
# Linhas de relatório (somente leitura)
# =========================
class OverrunWarning(TypedDict):
    code: str
    available: float
    entered: float


class OverheadBreakdown(TypedDict):
    sequence: int
    services_executed: float
    total_contract: float
    total_overhead: float
    denominator: float
    execution_ratio: Optional[float]


class MeasurementRow(TypedDict):
    code: str
    level: int
    description: str
    unit: str
    is_parent: bool
    is_overhead: bool
    quantity: float
    unit_price: float
    value: float
    addendum_value: float
    contract_total: float
    period_quantity: float
    period_percentage: float
    period_value: float
    cumulative_quantity: float
    cumulative_value: float
    cumulative_percentage: float


class AddendumSummaryRow(TypedDict):
    sequence: int
    name: str
    acrescidos: float
    decrescidos: float
    extracontratuais: float
    acresc_mais_extra: float
    total_geral: float
    perc_aditivo: float
    perc_acumulado: float
    valor_pos_aditivo: float


EntriesDict = Dict[str, MeasurementEntry]   # código -> lançamento do período
RawRows = List[RawItemRow]


__all__ = [
    "ORIGEM_BASE",
    "ORIGEM_EXTRACONTRATUAL",
    "RawItemRow",
    "Addendum",
    "BudgetItem",
    "MeasurementEntry",
    "MeasurementPeriod",
    "OverrunWarning",
    "OverheadBreakdown",
    "MeasurementRow",
    "AddendumSummaryRow",
    "EntriesDict",
    "RawRows",
]
