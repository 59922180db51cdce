from datetime import date, timedelta
from loguru import logger

from ..models.config import MAX_DISTRIBUTION_DAYS, DailyCapacity
from ..models.entities import AllocationResult, DailyAllocation, LedgerSnapshot

# Casas decimais mantidas nas somas de horas e pontos
AMOUNT_PRECISION = 6


class AllocationPlanner:
    """Distribui uma quantidade de trabalho pelos dias respeitando a capacidade diária"""

    def __init__(self, max_days: int = MAX_DISTRIBUTION_DAYS):
        """
        Args:
            max_days: Limite de segurança de dias na distribuição
        """
        self.max_days = max_days

    def plan(
        self,
        selected_date: date,
        amount: float,
        ledger: LedgerSnapshot,
        capacity: DailyCapacity,
    ) -> AllocationResult:
        """
        Distribui a quantidade a partir do dia escolhido, de forma gulosa

        Cada dia recebe o mínimo entre o que falta e o que o dia ainda comporta.
        Todo dia do calendário é candidato, inclusive fins de semana. Um dia sem
        espaço entra na distribuição com zero, e o laço para ao atingir max_days
        mesmo que sobre quantidade a distribuir.

        Args:
            selected_date: Dia escolhido para a task
            amount: Quantidade a distribuir
            ledger: Fotografia das tasks já agendadas
            capacity: Capacidade diária

        Returns:
            AllocationResult: Pontos do dia escolhido, dias necessários e distribuição
        """
        current_day_points = round(ledger.amount_on(selected_date), AMOUNT_PRECISION)
        booked = ledger.amounts_by_day()

        distribution = []
        remaining = round(amount, AMOUNT_PRECISION)
        cursor = selected_date

        while remaining > 0:
            available = max(0.0, round(capacity.amount - booked.get(cursor, 0.0), AMOUNT_PRECISION))
            to_allocate = min(remaining, available)

            distribution.append(DailyAllocation(day=cursor, points=to_allocate))
            remaining = round(remaining - to_allocate, AMOUNT_PRECISION)

            cursor += timedelta(days=1)

            if len(distribution) >= self.max_days:
                if remaining > 0:
                    logger.warning(
                        f"Distribuição interrompida no limite de {self.max_days} dias, "
                        f"{remaining:.1f}{capacity.unit.symbol} sem alocação"
                    )
                break

        return AllocationResult(
            current_day_points=current_day_points,
            days_needed=len(distribution),
            distribution=distribution,
            requested=max(0.0, amount),
            unit=capacity.unit,
        )
