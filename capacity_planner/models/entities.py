from datetime import date, datetime
from typing import Dict, List, Optional
from enum import Enum
from pydantic import BaseModel, Field, field_validator

from .config import CapacityUnit, DailyCapacity, parse_date


class SprintStatus(str, Enum):
    """Status possíveis para uma sprint"""
    PLANNING = "planning"
    ACTIVE = "active"
    COMPLETED = "completed"


class ScheduledItem(BaseModel):
    """Task com esforço estimado e o único dia em que vence"""
    id: str
    amount: float = 0.0
    due_date: Optional[date] = None
    deleted_at: Optional[datetime] = None
    project_id: Optional[str] = None
    sprint_id: Optional[str] = None
    actual_hours: Optional[float] = None

    @field_validator("amount", mode="before")
    @classmethod
    def validate_amount(cls, v):
        """Horas nulas contam como zero"""
        return 0.0 if v is None else v

    @field_validator("due_date", mode="before")
    @classmethod
    def validate_due_date(cls, v):
        """Valida e converte a data de vencimento"""
        if v is None or v == "":
            return None
        return parse_date(v)

    @property
    def is_deleted(self) -> bool:
        """Verifica se a task foi removida logicamente"""
        return self.deleted_at is not None


class DailyAllocation(BaseModel):
    """Quantidade alocada em um dia"""
    day: date
    points: float


class AllocationResult(BaseModel):
    """Resultado da distribuição de uma quantidade pelos dias"""
    current_day_points: float
    days_needed: int
    distribution: List[DailyAllocation] = Field(default_factory=list)
    requested: float = 0.0
    unit: CapacityUnit = CapacityUnit.HOURS

    @property
    def allocated(self) -> float:
        """Total efetivamente distribuído"""
        return sum(d.points for d in self.distribution)

    @property
    def unallocated(self) -> float:
        """Sobra que não coube dentro do limite de dias"""
        return max(0.0, self.requested - self.allocated)


class LedgerSnapshot(BaseModel):
    """Fotografia das tasks com data de um projeto"""
    project_id: str
    items: List[ScheduledItem] = Field(default_factory=list)

    def amount_on(self, day: date) -> float:
        """Soma das quantidades que vencem no dia informado"""
        return sum(item.amount for item in self.items if item.due_date == day)

    def amounts_by_day(self) -> Dict[date, float]:
        """Soma das quantidades agrupadas por dia"""
        totals: Dict[date, float] = {}
        for item in self.items:
            if item.due_date is not None:
                totals[item.due_date] = totals.get(item.due_date, 0.0) + item.amount
        return totals


class LedgerLoadResult(BaseModel):
    """Resultado explícito da leitura do ledger: fotografia ou erro"""
    snapshot: Optional[LedgerSnapshot] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.snapshot is not None and self.error is None

    @classmethod
    def success(cls, snapshot: LedgerSnapshot) -> "LedgerLoadResult":
        return cls(snapshot=snapshot)

    @classmethod
    def failure(cls, error: str) -> "LedgerLoadResult":
        return cls(error=error)


class ValidationResult(BaseModel):
    """Aceite ou recusa, com o motivo exibido ao usuário"""
    valid: bool
    reason: Optional[str] = None

    @classmethod
    def accept(cls) -> "ValidationResult":
        return cls(valid=True)

    @classmethod
    def reject(cls, reason: str) -> "ValidationResult":
        return cls(valid=False, reason=reason)


class CapacityCheck(BaseModel):
    """Resultado completo da verificação de capacidade de uma task"""
    result: Optional[AllocationResult] = None
    validation: ValidationResult
    fetch_failed: bool = False


class Sprint(BaseModel):
    """Representa uma sprint da organização"""
    id: str
    name: str = ""
    start_date: date
    end_date: date
    org_id: Optional[str] = None
    status: SprintStatus = SprintStatus.PLANNING
    goal: Optional[str] = None

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def validate_date(cls, v) -> date:
        """Valida e converte a string de data para date"""
        return parse_date(v)


class SprintCapacity(BaseModel):
    """Capacidade de uma sprint frente aos pontos atribuídos"""
    days: int
    total_capacity: float
    used_points: float
    remaining: float
    is_over_capacity: bool
    unit: CapacityUnit = CapacityUnit.COMPLEXITY_POINTS

    @property
    def percentage(self) -> float:
        """Percentual da capacidade já ocupado"""
        return (self.used_points / self.total_capacity * 100) if self.total_capacity > 0 else 0.0


class SprintCalendarDay(BaseModel):
    """Ocupação de um dia da sprint"""
    day: date
    allocated: float = 0.0
    item_ids: List[str] = Field(default_factory=list)
    is_weekend: bool = False
    utilization_percent: float = 0.0
    is_over_capacity: bool = False


class SprintCalendar(BaseModel):
    """Calendário de ocupação de uma sprint, dia a dia"""
    sprint_id: str
    daily_capacity: DailyCapacity
    days: List[SprintCalendarDay] = Field(default_factory=list)
    items_count: int = 0
    items_with_date: int = 0

    @property
    def total_days(self) -> int:
        return len(self.days)

    @property
    def work_days(self) -> int:
        """Dias úteis (segunda a sexta) da janela"""
        return len([d for d in self.days if not d.is_weekend])

    @property
    def total_amount(self) -> float:
        return sum(d.allocated for d in self.days)

    @property
    def average_per_work_day(self) -> float:
        return self.total_amount / self.work_days if self.work_days > 0 else 0.0

    @property
    def over_capacity_days(self) -> List[SprintCalendarDay]:
        return [d for d in self.days if d.is_over_capacity]


class SprintProgress(BaseModel):
    """Horas estimadas contra horas realizadas das tasks da sprint"""
    total_capacity: float
    used: float
    remaining: float
    percentage: float
