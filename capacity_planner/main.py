import json
from pathlib import Path
from typing import Optional
import typer
from loguru import logger
from rich.console import Console
from rich.table import Table

from .models.config import SetupConfig, format_amount, parse_date
from .models.entities import AllocationResult, Sprint
from .store.client import JsonWorkItemStore
from .services.validation import DailyCapacityService
from .services.sprint_capacity import SprintPlanningService
from .services.report import ReportGenerator

app = typer.Typer(help="Planejador de Capacidade - Tasks e Sprints")
console = Console()


def configurar_logger(output_dir: Path = Path("logs")):
    """Configura o sistema de logs"""
    output_dir.mkdir(exist_ok=True)

    logger.remove()  # Remove handlers padrão
    logger.add(
        output_dir / "capacidade_{time}.log",
        rotation="1 day",
        retention="7 days",
        level="INFO",
        encoding='utf-8'
    )
    logger.add(lambda msg: console.print(msg, style="blue", markup=False, end=""), level="INFO")


def load_json_file(path: Path) -> dict:
    """
    Carrega um arquivo JSON

    Args:
        path: Caminho do arquivo

    Returns:
        dict: Conteúdo do arquivo
    """
    try:
        return json.loads(path.read_text(encoding='utf-8'))
    except Exception as e:
        logger.error(f"Erro ao carregar arquivo {path}: {str(e)}")
        raise typer.Exit(1)


def carregar_setup(config_dir: Path) -> SetupConfig:
    """Configura os logs e carrega config/setup.json"""
    configurar_logger()
    logger.info(f"Usando diretório de configuração: {config_dir}")
    return SetupConfig(**load_json_file(config_dir / "setup.json"))


def exibir_distribuicao(result: AllocationResult) -> None:
    """Mostra a distribuição dia a dia calculada para a task"""
    table = Table(title="Distribuição por dia")
    table.add_column("Data")
    table.add_column("Alocado", justify="right")
    for item in result.distribution:
        if item.points <= 0:
            continue
        table.add_row(item.day.strftime('%d/%m/%Y'), f"{format_amount(item.points)}{result.unit.symbol}")
    console.print(table)


ConfigDirOption = typer.Option(
    "config",
    help="Diretório com os arquivos de configuração",
    exists=True,
    dir_okay=True,
    file_okay=False
)


@app.command("validar-task")
def validar_task(
    data: str = typer.Option(..., help="Data de vencimento (YYYY-MM-DD)"),
    horas: float = typer.Option(..., help="Horas estimadas da task"),
    task_id: Optional[str] = typer.Option(None, help="ID da task em edição"),
    config_dir: Path = ConfigDirOption,
):
    """Verifica se uma task cabe no dia escolhido"""
    try:
        setup = carregar_setup(config_dir)
        service = DailyCapacityService(JsonWorkItemStore(setup.data_file), setup.capacity)
        check = service.check(setup.project_id, parse_date(data), horas, task_id)

        if check.result:
            exibir_distribuicao(check.result)
        if not check.validation.valid:
            console.print(check.validation.reason, style="red", markup=False)
            raise typer.Exit(1)
        console.print("Task cabe no dia escolhido", style="green")
    except typer.Exit:
        raise
    except Exception as e:
        logger.error(f"Erro durante validação: {str(e)}")
        raise typer.Exit(1)


@app.command("registrar-task")
def registrar_task(
    task_id: str = typer.Option(..., help="ID da task"),
    data: str = typer.Option(..., help="Data de vencimento (YYYY-MM-DD)"),
    horas: float = typer.Option(..., help="Horas estimadas da task"),
    config_dir: Path = ConfigDirOption,
):
    """Grava a task revalidando a capacidade no momento da escrita"""
    try:
        setup = carregar_setup(config_dir)
        service = DailyCapacityService(JsonWorkItemStore(setup.data_file), setup.capacity)
        check = service.commit(setup.project_id, task_id, parse_date(data), horas)

        if not check.validation.valid:
            console.print(check.validation.reason, style="red", markup=False)
            raise typer.Exit(1)
        console.print(f"Task {task_id} gravada", style="green", markup=False)
    except typer.Exit:
        raise
    except Exception as e:
        logger.error(f"Erro ao gravar task: {str(e)}")
        raise typer.Exit(1)


@app.command("capacidade-sprint")
def capacidade_sprint(
    sprint_id: str = typer.Option(..., help="ID da sprint"),
    config_dir: Path = ConfigDirOption,
):
    """Mostra a capacidade da sprint frente aos pontos atribuídos"""
    try:
        setup = carregar_setup(config_dir)
        service = SprintPlanningService(JsonWorkItemStore(setup.data_file), setup.capacity, setup.timezone)
        capacity = service.capacity_for(sprint_id)
        unit = capacity.unit.symbol

        table = Table(title=f"Capacidade da Sprint {sprint_id}")
        table.add_column("Métrica")
        table.add_column("Valor", justify="right")
        table.add_row("Dias", str(capacity.days))
        table.add_row("Capacidade total", f"{format_amount(capacity.total_capacity)}{unit}")
        table.add_row("Pontos atribuídos", f"{format_amount(capacity.used_points)}{unit}")
        table.add_row("Saldo", f"{format_amount(capacity.remaining)}{unit}")
        table.add_row("Preenchido", f"{capacity.percentage:.1f}%")
        console.print(table)

        if capacity.is_over_capacity:
            console.print(
                f"Capacidade excedida! Remova {format_amount(abs(capacity.remaining))}{unit} para continuar.",
                style="red",
            )
            raise typer.Exit(1)
    except typer.Exit:
        raise
    except Exception as e:
        logger.error(f"Erro ao calcular capacidade: {str(e)}")
        raise typer.Exit(1)


@app.command("validar-sprint")
def validar_sprint(
    nome: str = typer.Option(..., help="Nome da sprint"),
    inicio: str = typer.Option(..., help="Data de início (YYYY-MM-DD)"),
    fim: str = typer.Option(..., help="Data de fim (YYYY-MM-DD)"),
    sprint_id: Optional[str] = typer.Option(None, help="ID da sprint em edição"),
    config_dir: Path = ConfigDirOption,
):
    """Valida datas e sobreposição de uma sprint nova ou editada"""
    try:
        setup = carregar_setup(config_dir)
        service = SprintPlanningService(JsonWorkItemStore(setup.data_file), setup.capacity, setup.timezone)
        candidate = Sprint(
            id=sprint_id or "nova",
            name=nome,
            start_date=inicio,
            end_date=fim,
            org_id=setup.org_id,
        )
        result = service.validate_candidate(candidate, exclude_id=sprint_id)

        if not result.valid:
            console.print(result.reason, style="red", markup=False)
            raise typer.Exit(1)
        console.print(f"Sprint {nome} válida", style="green", markup=False)
    except typer.Exit:
        raise
    except Exception as e:
        logger.error(f"Erro ao validar sprint: {str(e)}")
        raise typer.Exit(1)


@app.command()
def relatorio(
    sprint_id: str = typer.Option(..., help="ID da sprint"),
    config_dir: Path = ConfigDirOption,
):
    """Gera o relatório de capacidade da sprint"""
    try:
        setup = carregar_setup(config_dir)
        store = JsonWorkItemStore(setup.data_file)
        service = SprintPlanningService(store, setup.capacity, setup.timezone)

        logger.info("Gerando relatório...")
        generator = ReportGenerator(
            sprint=store.load_sprint(sprint_id),
            capacity=service.capacity_for(sprint_id),
            calendar=service.calendar_for(sprint_id),
            progress=service.progress_for(sprint_id),
            output_dir=setup.output_dir,
        )
        generator.generate()

        logger.info("Processo concluído com sucesso!")
    except typer.Exit:
        raise
    except Exception as e:
        logger.error(f"Erro durante execução: {str(e)}")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
