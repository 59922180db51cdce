from datetime import date, datetime
from enum import Enum
from typing import Union
from pydantic import BaseModel, Field, field_validator

from .errors import ConfigError

# Limite de segurança: a distribuição nunca passa de 30 dias
MAX_DISTRIBUTION_DAYS = 30


def parse_date(value: Union[str, date, datetime]) -> date:
    """
    Converte uma data de calendário no formato YYYY-MM-DD

    Args:
        value: String ISO, date ou datetime

    Returns:
        date: Data de calendário

    Raises:
        ConfigError: Se o valor não for uma data válida
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return datetime.strptime(value.strip()[:10], "%Y-%m-%d").date()
        except ValueError as e:
            raise ConfigError(f"Data inválida: {value}. Formato esperado: YYYY-MM-DD") from e
    raise ConfigError(f"Data inválida: {value!r}. Formato esperado: YYYY-MM-DD")


class CapacityUnit(str, Enum):
    """Unidades de capacidade"""

    HOURS = "hours"
    COMPLEXITY_POINTS = "complexity_points"

    @property
    def symbol(self) -> str:
        return "h" if self == CapacityUnit.HOURS else "pts"


class DailyCapacity(BaseModel):
    """Capacidade máxima de um dia, sempre acompanhada da sua unidade"""

    amount: float = Field(..., gt=0)
    unit: CapacityUnit

    def describe(self) -> str:
        """Texto curto do limite, ex: 8h/dia"""
        return f"{format_amount(self.amount)}{self.unit.symbol}/dia"


# Horas por dia para tasks e pontos de complexidade por dia para user stories.
# O mesmo número representa grandezas diferentes e não deve ser trocado.
TASK_DAILY_CAPACITY = DailyCapacity(amount=8, unit=CapacityUnit.HOURS)
STORY_DAILY_CAPACITY = DailyCapacity(amount=8, unit=CapacityUnit.COMPLEXITY_POINTS)


class FetchFailurePolicy(str, Enum):
    """O que fazer quando a leitura dos itens agendados falha"""

    FAIL_OPEN = "fail_open"
    FAIL_CLOSED = "fail_closed"


class CapacityConfig(BaseModel):
    """Configuração das regras de capacidade"""

    task_daily_capacity: DailyCapacity = TASK_DAILY_CAPACITY
    story_daily_capacity: DailyCapacity = STORY_DAILY_CAPACITY
    max_distribution_days: int = Field(default=MAX_DISTRIBUTION_DAYS, gt=0)
    fetch_failure_policy: FetchFailurePolicy = FetchFailurePolicy.FAIL_CLOSED

    @field_validator("task_daily_capacity")
    @classmethod
    def validate_task_unit(cls, v: DailyCapacity) -> DailyCapacity:
        """Garante que a capacidade de tasks está em horas"""
        if v.unit != CapacityUnit.HOURS:
            raise ValueError("A capacidade diária de tasks deve ser em horas")
        return v

    @field_validator("story_daily_capacity")
    @classmethod
    def validate_story_unit(cls, v: DailyCapacity) -> DailyCapacity:
        """Garante que a capacidade de user stories está em pontos de complexidade"""
        if v.unit != CapacityUnit.COMPLEXITY_POINTS:
            raise ValueError("A capacidade diária de user stories deve ser em pontos de complexidade")
        return v


class SetupConfig(BaseModel):
    """Configuração principal do sistema"""

    project_id: str
    org_id: str
    data_file: str
    output_dir: str = "output"
    timezone: str = Field(default="America/Sao_Paulo")
    capacity: CapacityConfig = Field(default_factory=CapacityConfig)


def format_amount(value: float) -> str:
    """Formata horas ou pontos sem casas decimais desnecessárias (6.0 -> 6, 2.5 -> 2.5)"""
    value = round(float(value), 2)
    if value.is_integer():
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")
