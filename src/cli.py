# src/cli.py
from __future__ import annotations

import sys
import json
import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, Optional
import typer

# permite "python src/cli.py" rodar sem instalar o pacote
sys.path.append(str(Path(__file__).resolve().parent))

from medicao_obra.adapters.planilha import load_budget_tree, load_planilha
from medicao_obra.config import get_settings
from medicao_obra.errors import MedicaoError
from medicao_obra.exporters.excel import export_medicao_excel
from medicao_obra.exporters.json_estado import EstadoObra, load_state, save_state
from medicao_obra.exporters.json_medicao import export_medicao_json
from medicao_obra.addenda import contract_summary
from medicao_obra.overhead import distribute_overhead
from medicao_obra.reports import financial_summary, measurement_rows

app = typer.Typer(no_args_is_help=True, add_completion=False, help="""
Medição de obras: planilha orçamentária, medições, aditivos e Administração Local.
""")

_ESTADO_HELP = "Arquivo JSON com o estado da obra (planilha + medições + aditivos)."


def _estado_opt():
    return typer.Option(get_settings().estado, "--estado", help=_ESTADO_HELP)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log em nível DEBUG."),
):
    level = logging.DEBUG if verbose else getattr(logging, get_settings().log_level, logging.INFO)
    logging.basicConfig(level=level, format="%(levelname)s: %(message)s")


@contextmanager
def _obra(estado: Path, salvar: bool = True) -> Iterator[EstadoObra]:
    """Carrega o estado, executa o comando e salva; erros de validação viram mensagem."""
    try:
        obra = load_state(estado)
        yield obra
    except MedicaoError as e:
        typer.secho(f"[ERRO] {e}", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    if salvar:
        # a planilha vigente é a do ledger (pode ter sido trocada na importação)
        save_state(estado, obra.ledger.tree, obra.ledger, obra.book)


def _seq_ou_atual(obra: EstadoObra, medicao: Optional[int]) -> int:
    seq = medicao or obra.ledger.current_sequence()
    if seq is None:
        typer.secho("[ERRO] Nenhuma medição criada ainda (use nova-medicao).", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    return seq


# =====================================================================
# PLANILHA
# =====================================================================

@app.command("importar")
def importar(
    planilha: Path = typer.Option(..., exists=True, readable=True, help="Planilha orçamentária (.xlsx/.csv)."),
    aba: str = typer.Option("", help="Nome da aba (padrão: primeira)."),
    manter_medicoes: bool = typer.Option(
        False, "--manter-medicoes", help="Mantém lançamentos dos itens que continuam na planilha.",
    ),
    estado: Path = _estado_opt(),
):
    """
    Importa a planilha orçamentária e recalcula os totais hierárquicos.
    Por padrão, limpa todos os lançamentos de medição existentes.
    Itens extracontratuais e aditivos lançados em sessões são mantidos.
    """
    typer.secho(">> Lendo PLANILHA…", fg=typer.colors.CYAN)
    with _obra(estado) as obra:
        tree = load_budget_tree(planilha, aba or None)
        obra.book.carry_extracontractual(obra.ledger.tree, tree)
        obra.ledger.rebind(tree, reset=not manter_medicoes)
        total = sum(it.contract_total for it in tree.leaves())
        typer.secho(f">> OK! {len(tree)} itens; total do contrato {total:,.2f}", fg=typer.colors.GREEN)


@app.command("marcar-adm")
def marcar_adm(
    item: str = typer.Option(..., help="Código do item (ex.: 1.2)."),
    desmarcar: bool = typer.Option(False, "--desmarcar", help="Remove a marcação."),
    estado: Path = _estado_opt(),
):
    """Marca/desmarca um item como Administração Local."""
    with _obra(estado) as obra:
        obra.tree.set_overhead(item, not desmarcar)
    typer.secho(f">> Item {item} {'desmarcado' if desmarcar else 'marcado'}.", fg=typer.colors.GREEN)


# =====================================================================
# MEDIÇÕES
# =====================================================================

@app.command("nova-medicao")
def nova_medicao(estado: Path = _estado_opt()):
    """Cria a próxima medição."""
    with _obra(estado) as obra:
        p = obra.ledger.new_period()
    typer.secho(f">> {p.name} criada.", fg=typer.colors.GREEN)


@app.command("medir")
def medir(
    item: str = typer.Option(..., help="Código do item folha."),
    quantidade: Optional[float] = typer.Option(None, help="Quantidade executada no período."),
    percentual: Optional[float] = typer.Option(None, help="Alternativa: % executado (0–100)."),
    medicao: int = typer.Option(0, help="Número da medição (padrão: a mais recente)."),
    estado: Path = _estado_opt(),
):
    """Lança a quantidade (ou %) executada de um item na medição."""
    if (quantidade is None) == (percentual is None):
        raise typer.BadParameter("Informe --quantidade OU --percentual.")
    with _obra(estado) as obra:
        seq = _seq_ou_atual(obra, medicao)
        if quantidade is not None:
            e = obra.ledger.set_entry(seq, item, quantidade)
        else:
            e = obra.ledger.set_entry_percentage(seq, item, percentual)
    typer.secho(
        f">> {item}: qtd {e.quantity:,.4f} | {e.percentage:.2f}% | {e.value:,.2f}",
        fg=typer.colors.GREEN,
    )


@app.command("adm-local")
def adm_local(
    medicao: int = typer.Option(0, help="Número da medição (padrão: a mais recente)."),
    estado: Path = _estado_opt(),
):
    """Calcula e lança a Administração Local da medição."""
    with _obra(estado) as obra:
        ratio = distribute_overhead(obra.ledger, medicao or None)
    typer.secho(
        f">> Administração Local calculada! Porcentagem de execução: {ratio * 100:.2f}%",
        fg=typer.colors.GREEN,
    )


@app.command("bloquear")
def bloquear(
    medicao: int = typer.Option(..., help="Número da medição."),
    estado: Path = _estado_opt(),
):
    """Salva e bloqueia a medição."""
    with _obra(estado) as obra:
        p = obra.ledger.lock_period(medicao)
    typer.secho(f">> {p.name} bloqueada.", fg=typer.colors.GREEN)


@app.command("reabrir")
def reabrir(
    medicao: int = typer.Option(..., help="Número da medição."),
    estado: Path = _estado_opt(),
):
    """Reabre uma medição bloqueada."""
    with _obra(estado) as obra:
        p = obra.ledger.reopen_period(medicao)
    typer.secho(f">> {p.name} reaberta.", fg=typer.colors.GREEN)


# =====================================================================
# ADITIVOS
# =====================================================================

@app.command("aditivo-novo")
def aditivo_novo(
    planilha: Optional[Path] = typer.Option(
        None, exists=True, readable=True, help="Planilha de itens extracontratuais (opcional).",
    ),
    estado: Path = _estado_opt(),
):
    """Cria um aditivo; com --planilha, importa itens extracontratuais nele."""
    with _obra(estado) as obra:
        s = obra.book.new_session()
        novos = []
        if planilha is not None:
            rows = load_planilha(planilha, exigir_quantidade=True)
            novos = obra.book.import_extracontractual(obra.tree, s.sequence, rows)
    typer.secho(f">> {s.name} criado ({len(novos)} item(ns) extracontratual(is)).", fg=typer.colors.GREEN)


@app.command("aditivo-item")
def aditivo_item(
    aditivo: int = typer.Option(..., help="Número do aditivo."),
    item: str = typer.Option(..., help="Código do item folha."),
    quantidade: float = typer.Option(..., help="Quantidade acrescida (negativa = supressão)."),
    estado: Path = _estado_opt(),
):
    """Lança a quantidade aditivada de um item e recalcula a planilha."""
    with _obra(estado) as obra:
        e = obra.book.set_entry(obra.tree, aditivo, item, quantidade)
        obra.book.apply_to(obra.tree)
    typer.secho(f">> {item}: aditivo {e.quantity:,.4f} ({e.value:,.2f})", fg=typer.colors.GREEN)


@app.command("aditivo-bloquear")
def aditivo_bloquear(
    aditivo: int = typer.Option(..., help="Número do aditivo."),
    estado: Path = _estado_opt(),
):
    """Publica (bloqueia) o aditivo; só aditivos publicados entram no resumo do contrato."""
    with _obra(estado) as obra:
        s = obra.book.lock_session(aditivo)
    typer.secho(f">> {s.name} bloqueado.", fg=typer.colors.GREEN)


# =====================================================================
# RELATÓRIOS
# =====================================================================

@app.command("resumo")
def resumo(
    medicao: int = typer.Option(0, help="Até a medição N (padrão: a mais recente)."),
    estado: Path = _estado_opt(),
):
    """Imprime (JSON) o resumo financeiro e o resumo dos aditivos."""
    with _obra(estado, salvar=False) as obra:
        payload = {
            "financeiro": financial_summary(obra.ledger, medicao or None),
            "contrato": contract_summary(obra.tree, obra.book),
        }
    typer.echo(json.dumps(payload, ensure_ascii=False, indent=2))


@app.command("exportar")
def exportar(
    out: Optional[Path] = typer.Option(
        None, help="Arquivo de saída (.xlsx ou .json). Padrão: MEDICAO_OUTPUT/medicao_NN.xlsx",
    ),
    medicao: int = typer.Option(0, help="Número da medição (padrão: a mais recente)."),
    estado: Path = _estado_opt(),
):
    """Exporta a planilha de medição (período + acumulado) para Excel ou JSON."""
    with _obra(estado, salvar=False) as obra:
        seq = medicao or None
        rows = measurement_rows(obra.ledger, seq)
        res = financial_summary(obra.ledger, seq)
    if out is None:
        out = get_settings().output_dir / f"medicao_{res['medicao'] or 0:02d}.xlsx"
    if out.suffix.lower() == ".json":
        export_medicao_json(rows, out, resumo=res, meta={"estado": str(estado)})
    elif out.suffix.lower() in (".xlsx", ".xlsm"):
        export_medicao_excel(rows, out, resumo=res)
    else:
        raise typer.BadParameter("Extensão não suportada. Use .xlsx ou .json")
    typer.secho(f">> OK! Medição exportada em {out}", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app(prog_name="cli.py")
