from datetime import date
from typing import Optional
from loguru import logger

from ..models.config import (
    CapacityConfig,
    DailyCapacity,
    FetchFailurePolicy,
    TASK_DAILY_CAPACITY,
    format_amount,
)
from ..models.entities import AllocationResult, CapacityCheck, ValidationResult
from .ledger import CapacityLedger
from .planner import AMOUNT_PRECISION, AllocationPlanner


class ValidationGate:
    """Decide se uma task cabe inteira no dia escolhido"""

    def __init__(self, capacity: DailyCapacity = TASK_DAILY_CAPACITY):
        self.capacity = capacity

    def validate(self, result: Optional[AllocationResult], amount: Optional[float], due_date: Optional[date]) -> ValidationResult:
        """
        Aplica a regra de compromisso em um único dia

        A distribuição em vários dias serve apenas para compor a mensagem: qualquer
        plano que precise de mais de um dia é recusado.

        Args:
            result: Distribuição calculada pelo planejador (None quando não há informação)
            amount: Quantidade da task
            due_date: Dia escolhido

        Returns:
            ValidationResult: Aceite ou recusa com o motivo
        """
        if result is None or amount is None or due_date is None:
            return ValidationResult.accept()

        limit = self.capacity.amount
        symbol = self.capacity.unit.symbol
        day = due_date.strftime("%d/%m/%Y")
        current = result.current_day_points

        if result.days_needed == 1 and round(current + amount, AMOUNT_PRECISION) > limit:
            return ValidationResult.reject(
                f"Limite de {self.capacity.describe()} excedido! Dia {day} já tem "
                f"{format_amount(current)}{symbol} alocados. Você pode alocar no máximo "
                f"{format_amount(max(0.0, limit - current))}{symbol} neste dia."
            )

        if result.days_needed > 1:
            return ValidationResult.reject(
                f"Esta task de {format_amount(amount)}{symbol} não cabe no dia {day} "
                f"(já tem {format_amount(current)}{symbol}). Escolha uma data com mais "
                f"disponibilidade ou reduza as horas estimadas."
            )

        return ValidationResult.accept()


class DailyCapacityService:
    """Compõe ledger, planejador e validação para a capacidade diária de tasks"""

    def __init__(self, store, config: Optional[CapacityConfig] = None):
        """
        Inicializa o serviço

        Args:
            store: Fonte de dados das tasks
            config: Regras de capacidade (padrão: 8h/dia, 30 dias, falha fechada)
        """
        self.store = store
        self.config = config or CapacityConfig()
        self.ledger = CapacityLedger(store)
        self.planner = AllocationPlanner(self.config.max_distribution_days)
        self.gate = ValidationGate(self.config.task_daily_capacity)

    def calculate_daily_points(
        self,
        project_id: str,
        selected_date: date,
        amount: float,
        exclude_id: Optional[str] = None,
    ) -> Optional[AllocationResult]:
        """
        Calcula a distribuição da task sobre uma fotografia nova do projeto

        Returns:
            Optional[AllocationResult]: Distribuição, ou None se a leitura falhou
        """
        loaded = self.ledger.load(project_id, exclude_id)
        if not loaded.ok:
            return None
        return self.planner.plan(selected_date, amount, loaded.snapshot, self.config.task_daily_capacity)

    def _fetch_failed(self, due_date: date, policy: FetchFailurePolicy) -> CapacityCheck:
        """Aplica a política de falha de leitura"""
        if policy == FetchFailurePolicy.FAIL_OPEN:
            logger.warning(f"Validação de capacidade desativada para {due_date.isoformat()}: falha na leitura das tasks")
            return CapacityCheck(result=None, validation=ValidationResult.accept(), fetch_failed=True)

        return CapacityCheck(
            result=None,
            validation=ValidationResult.reject(
                f"Não foi possível verificar a capacidade do dia {due_date.strftime('%d/%m/%Y')}. Tente novamente."
            ),
            fetch_failed=True,
        )

    def check(
        self,
        project_id: str,
        selected_date: date,
        amount: float,
        exclude_id: Optional[str] = None,
    ) -> CapacityCheck:
        """
        Verifica se a task cabe no dia escolhido

        Args:
            project_id: ID do projeto
            selected_date: Dia escolhido
            amount: Horas estimadas da task
            exclude_id: ID da task em edição

        Returns:
            CapacityCheck: Distribuição e decisão
        """
        loaded = self.ledger.load(project_id, exclude_id)
        if not loaded.ok:
            return self._fetch_failed(selected_date, self.config.fetch_failure_policy)

        result = self.planner.plan(selected_date, amount, loaded.snapshot, self.config.task_daily_capacity)
        validation = self.gate.validate(result, amount, selected_date)
        if not validation.valid:
            logger.info(f"Task recusada no projeto {project_id} em {selected_date.isoformat()}: {validation.reason}")
        return CapacityCheck(result=result, validation=validation)

    def commit(self, project_id: str, item_id: str, selected_date: date, amount: float) -> CapacityCheck:
        """
        Revalida a capacidade no momento da escrita e grava a task

        Leitura, validação e escrita acontecem dentro da mesma transação da fonte
        de dados. Aqui a falha de leitura sempre recusa a escrita.

        Args:
            project_id: ID do projeto
            item_id: ID da task
            selected_date: Nova data de vencimento
            amount: Novas horas estimadas

        Returns:
            CapacityCheck: Decisão tomada sobre a fotografia usada na escrita
        """
        with self.store.transaction():
            loaded = self.ledger.load(project_id, item_id)
            if not loaded.ok:
                return self._fetch_failed(selected_date, FetchFailurePolicy.FAIL_CLOSED)

            result = self.planner.plan(selected_date, amount, loaded.snapshot, self.config.task_daily_capacity)
            validation = self.gate.validate(result, amount, selected_date)
            if not validation.valid:
                logger.warning(f"Gravação da task {item_id} recusada: {validation.reason}")
                return CapacityCheck(result=result, validation=validation)

            self.store.save_scheduled_item(project_id, item_id, selected_date, amount)

        logger.info(f"Task {item_id} agendada para {selected_date.isoformat()} com {format_amount(amount)}h")
        return CapacityCheck(result=result, validation=validation)
