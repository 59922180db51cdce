from datetime import date, datetime, timedelta
from typing import Iterable, List, Optional, Union
from zoneinfo import ZoneInfo
from loguru import logger

from ..models.config import (
    CapacityConfig,
    CapacityUnit,
    DailyCapacity,
    STORY_DAILY_CAPACITY,
    TASK_DAILY_CAPACITY,
)
from ..models.entities import (
    ScheduledItem,
    Sprint,
    SprintCalendar,
    SprintCalendarDay,
    SprintCapacity,
    SprintProgress,
    ValidationResult,
)
from ..models.errors import ConfigError


class SprintCapacityCalculator:
    """Cálculos de capacidade sobre a janela de datas de uma sprint"""

    def __init__(self, daily_capacity: DailyCapacity = STORY_DAILY_CAPACITY):
        """
        Args:
            daily_capacity: Pontos de complexidade por dia
        """
        self.daily_capacity = daily_capacity

    @staticmethod
    def inclusive_day_count(start: date, end: date) -> int:
        """Diferença em dias inteiros mais um (início e fim contam)"""
        return (end - start).days + 1

    def capacity(
        self,
        sprint: Sprint,
        assigned_points: Union[float, Iterable[Optional[float]]],
        daily_capacity: Optional[DailyCapacity] = None,
    ) -> SprintCapacity:
        """
        Calcula a capacidade da sprint frente aos pontos atribuídos

        Args:
            sprint: Sprint com janela inclusiva de datas
            assigned_points: Pontos das user stories (ou o total já somado)
            daily_capacity: Pontos por dia (padrão: o do calculador)

        Returns:
            SprintCapacity: Dias, capacidade total, pontos usados e saldo

        Raises:
            ConfigError: Se a janela estiver invertida ou a capacidade não for em pontos
        """
        daily_capacity = daily_capacity or self.daily_capacity
        if daily_capacity.unit != CapacityUnit.COMPLEXITY_POINTS:
            raise ConfigError("A capacidade da sprint deve ser medida em pontos de complexidade")
        if sprint.end_date < sprint.start_date:
            raise ConfigError(
                f"Sprint {sprint.id} com data final {sprint.end_date.isoformat()} "
                f"anterior à data inicial {sprint.start_date.isoformat()}"
            )

        if isinstance(assigned_points, (int, float)):
            assigned_points = [assigned_points]

        days = self.inclusive_day_count(sprint.start_date, sprint.end_date)
        total_capacity = days * daily_capacity.amount
        used_points = sum(p or 0 for p in assigned_points)

        return SprintCapacity(
            days=days,
            total_capacity=total_capacity,
            used_points=used_points,
            remaining=total_capacity - used_points,
            is_over_capacity=used_points > total_capacity,
            unit=daily_capacity.unit,
        )

    @staticmethod
    def sprints_overlap(a: Sprint, b: Sprint) -> bool:
        """Duas sprints se sobrepõem se compartilham ao menos um dia"""
        return a.start_date <= b.end_date and a.end_date >= b.start_date

    def find_overlapping_sprint(
        self,
        candidate: Sprint,
        siblings: Iterable[Sprint],
        exclude_id: Optional[str] = None,
    ) -> Optional[Sprint]:
        """
        Procura uma sprint da mesma organização que compartilhe dias com a candidata

        Args:
            candidate: Sprint sendo criada ou editada
            siblings: Sprints existentes da organização
            exclude_id: ID da sprint em edição

        Returns:
            Optional[Sprint]: Primeira sprint conflitante, se houver
        """
        for existing in siblings:
            if exclude_id is not None and existing.id == str(exclude_id):
                continue
            if self.sprints_overlap(existing, candidate):
                return existing
        return None

    @staticmethod
    def validate_dates(start: date, end: date, today: date) -> ValidationResult:
        """
        Valida as datas de uma sprint nova ou editada

        Args:
            start: Data de início
            end: Data de fim
            today: Data de hoje no fuso da organização
        """
        if start < today:
            return ValidationResult.reject("A data de início não pode ser retroativa")
        if end <= start:
            return ValidationResult.reject("A data final deve ser posterior à data inicial")
        return ValidationResult.accept()

    def validate_sprint(
        self,
        candidate: Sprint,
        siblings: Iterable[Sprint],
        today: date,
        exclude_id: Optional[str] = None,
    ) -> ValidationResult:
        """Valida datas e sobreposição de uma sprint candidata"""
        result = self.validate_dates(candidate.start_date, candidate.end_date, today)
        if not result.valid:
            return result

        conflict = self.find_overlapping_sprint(candidate, siblings, exclude_id)
        if conflict:
            return ValidationResult.reject(
                f'Já existe uma sprint "{conflict.name}" com datas sobrepostas '
                f"({conflict.start_date.strftime('%d/%m/%Y')} - {conflict.end_date.strftime('%d/%m/%Y')})"
            )
        return ValidationResult.accept()

    def calendar(
        self,
        sprint: Sprint,
        items: Iterable[ScheduledItem],
        daily_capacity: DailyCapacity = TASK_DAILY_CAPACITY,
    ) -> SprintCalendar:
        """
        Monta a ocupação dia a dia da sprint a partir das tasks com vencimento

        Args:
            sprint: Sprint
            items: Tasks da sprint
            daily_capacity: Horas por dia

        Returns:
            SprintCalendar: Um dia por data da janela, com horas alocadas e ocupação
        """
        if daily_capacity.unit != CapacityUnit.HOURS:
            raise ConfigError("O calendário da sprint deve ser medido em horas")
        if sprint.end_date < sprint.start_date:
            raise ConfigError(f"Sprint {sprint.id} com janela de datas invertida")

        items = [item for item in items if not item.is_deleted]
        days: List[SprintCalendarDay] = []
        current = sprint.start_date
        while current <= sprint.end_date:
            day_items = [item for item in items if item.due_date == current]
            allocated = sum(item.amount for item in day_items)
            days.append(SprintCalendarDay(
                day=current,
                allocated=allocated,
                item_ids=[item.id for item in day_items],
                # 5 = Sábado, 6 = Domingo
                is_weekend=current.weekday() >= 5,
                utilization_percent=allocated / daily_capacity.amount * 100,
                is_over_capacity=allocated > daily_capacity.amount,
            ))
            current += timedelta(days=1)

        return SprintCalendar(
            sprint_id=sprint.id,
            daily_capacity=daily_capacity,
            days=days,
            items_count=len(items),
            items_with_date=len([item for item in items if item.due_date is not None]),
        )

    @staticmethod
    def progress(items: Iterable[ScheduledItem]) -> SprintProgress:
        """Compara horas estimadas e horas realizadas das tasks da sprint"""
        items = list(items)
        total = sum(item.amount for item in items)
        used = sum(item.actual_hours or 0 for item in items)
        return SprintProgress(
            total_capacity=total,
            used=used,
            remaining=max(0.0, total - used),
            percentage=(used / total * 100) if total > 0 else 0.0,
        )


class SprintPlanningService:
    """Liga o calculador de capacidade de sprints à fonte de dados"""

    def __init__(self, store, config: Optional[CapacityConfig] = None, timezone: str = "America/Sao_Paulo"):
        self.store = store
        self.config = config or CapacityConfig()
        self.timezone = ZoneInfo(timezone)
        self.calculator = SprintCapacityCalculator(self.config.story_daily_capacity)

    def today(self) -> date:
        """Data de hoje no fuso configurado"""
        return datetime.now(self.timezone).date()

    def capacity_for(self, sprint_id: str) -> SprintCapacity:
        """Capacidade da sprint com os pontos de complexidade atribuídos a ela"""
        sprint = self.store.load_sprint(sprint_id)
        points = self.store.load_assigned_complexity_points(sprint_id)
        capacity = self.calculator.capacity(sprint, points)
        logger.info(
            f"Sprint {sprint.id}: {capacity.days} dias, capacidade {capacity.total_capacity:.1f}, "
            f"usados {capacity.used_points:.1f}, saldo {capacity.remaining:.1f}"
        )
        return capacity

    def validate_candidate(
        self,
        candidate: Sprint,
        today: Optional[date] = None,
        exclude_id: Optional[str] = None,
    ) -> ValidationResult:
        """
        Valida uma sprint antes de criar ou editar

        A falha ao buscar as sprints existentes recusa a operação.

        Args:
            candidate: Sprint candidata, com org_id preenchido
            today: Data de hoje (padrão: hoje no fuso configurado)
            exclude_id: ID da sprint em edição
        """
        try:
            siblings = self.store.load_sibling_sprints(candidate.org_id)
        except Exception as e:
            logger.error(f"Erro ao verificar sprints existentes da organização {candidate.org_id}: {str(e)}")
            return ValidationResult.reject(f"Erro ao verificar sprints existentes: {str(e)}")

        return self.calculator.validate_sprint(candidate, siblings, today or self.today(), exclude_id)

    def calendar_for(self, sprint_id: str) -> SprintCalendar:
        """Calendário de ocupação em horas da sprint"""
        sprint = self.store.load_sprint(sprint_id)
        items = self.store.load_sprint_tasks(sprint_id)
        return self.calculator.calendar(sprint, items, self.config.task_daily_capacity)

    def progress_for(self, sprint_id: str) -> SprintProgress:
        """Progresso em horas da sprint"""
        return self.calculator.progress(self.store.load_sprint_tasks(sprint_id))
