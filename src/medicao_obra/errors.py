# src/medicao_obra/errors.py
from __future__ import annotations

from typing import Iterable


class MedicaoError(ValueError):
    """
    Base de todos os erros de validação do motor de medição.
    São sempre recuperáveis: o chamador corrige a entrada e tenta de novo.
    """


class InvalidCodeError(MedicaoError):
    def __init__(self, code: object, motivo: str = "") -> None:
        self.code = code
        msg = f"Código de item inválido: {code!r}"
        if motivo:
            msg += f" ({motivo})"
        super().__init__(msg)


class DuplicateCodeError(MedicaoError):
    def __init__(self, codes: Iterable[str]) -> None:
        self.codes = list(codes)
        super().__init__(f"Códigos duplicados: {', '.join(self.codes)}")


class UnknownItemCodeError(MedicaoError):
    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Item {code!r} não existe na planilha orçamentária.")


class NotALeafError(MedicaoError):
    """Medições e aditivos só são lançados em itens folha."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"Item {code!r} possui subitens; lance os valores nos itens folha.")


class UnknownPeriodError(MedicaoError):
    def __init__(self, sequence: int) -> None:
        self.sequence = sequence
        super().__init__(f"A {sequence}ª medição não existe.")


class PeriodLockedError(MedicaoError):
    def __init__(self, sequence: int, tipo: str = "medição") -> None:
        self.sequence = sequence
        super().__init__(f"{tipo.capitalize()} {sequence} está bloqueada; reabra antes de editar.")


class EmptyPeriodError(MedicaoError):
    def __init__(self, sequence: int) -> None:
        self.sequence = sequence
        super().__init__(f"Não é possível bloquear a {sequence}ª medição sem dados preenchidos.")


class NoMeasuredServicesError(MedicaoError):
    def __init__(self, sequence: int | None = None) -> None:
        self.sequence = sequence
        super().__init__(
            "Nenhum serviço foi medido ainda. Insira valores de medição antes de "
            "calcular a administração local."
        )


class InvalidOverheadConfigurationError(MedicaoError):
    def __init__(self, total_contract: float, total_overhead: float) -> None:
        self.total_contract = total_contract
        self.total_overhead = total_overhead
        super().__init__(
            "Total do Contrato - Total Administração Local deve ser maior que zero "
            f"(contrato={total_contract:.2f}, adm. local={total_overhead:.2f})."
        )


class PlanilhaInvalidaError(MedicaoError):
    def __init__(self, path: str, motivo: str) -> None:
        self.path = path
        super().__init__(f"Planilha inválida {path!r}: {motivo}")


__all__ = [
    "MedicaoError",
    "InvalidCodeError",
    "DuplicateCodeError",
    "UnknownItemCodeError",
    "NotALeafError",
    "UnknownPeriodError",
    "PeriodLockedError",
    "EmptyPeriodError",
    "NoMeasuredServicesError",
    "InvalidOverheadConfigurationError",
    "PlanilhaInvalidaError",
]
