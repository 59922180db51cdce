import pytest
from datetime import date
from unittest.mock import Mock
from capacity_planner.models.config import (
    CapacityUnit,
    DailyCapacity,
    STORY_DAILY_CAPACITY,
    TASK_DAILY_CAPACITY,
)
from capacity_planner.models.entities import ScheduledItem, Sprint
from capacity_planner.models.errors import ConfigError, LedgerFetchError
from capacity_planner.services.sprint_capacity import SprintCapacityCalculator, SprintPlanningService


@pytest.fixture
def calculator():
    """Fixture para o calculador com 8 pontos/dia"""
    return SprintCapacityCalculator()


@pytest.fixture
def sprint():
    """Fixture para sprint de 14 dias"""
    return Sprint(id="S-1", name="Sprint 1", start_date="2024-02-01", end_date="2024-02-14", org_id="O-1")


@pytest.fixture
def siblings():
    """Fixture para sprints existentes da organização"""
    return [
        Sprint(id="A", name="Sprint A", start_date="2024-01-01", end_date="2024-01-14", org_id="O-1"),
        Sprint(id="C", name="Sprint C", start_date="2024-02-01", end_date="2024-02-14", org_id="O-1"),
    ]


def test_inclusive_day_count():
    """Testa a contagem de dias com início e fim inclusos"""
    assert SprintCapacityCalculator.inclusive_day_count(date(2024, 2, 1), date(2024, 2, 14)) == 14
    assert SprintCapacityCalculator.inclusive_day_count(date(2024, 2, 1), date(2024, 2, 1)) == 1


def test_capacity_over_limit(calculator, sprint):
    """Testa sprint com mais pontos que a capacidade"""
    capacity = calculator.capacity(sprint, [55, 34, 21, 8, 2])

    assert capacity.days == 14
    assert capacity.total_capacity == 112
    assert capacity.used_points == 120
    assert capacity.remaining == -8
    assert capacity.is_over_capacity
    assert capacity.unit == CapacityUnit.COMPLEXITY_POINTS


def test_capacity_within_limit(calculator, sprint):
    """Testa sprint dentro da capacidade, com pontos nulos"""
    capacity = calculator.capacity(sprint, [8, None, 13])

    assert capacity.used_points == 21
    assert capacity.remaining == 91
    assert not capacity.is_over_capacity


def test_capacity_exactly_full_is_not_over(calculator, sprint):
    """Testa sprint exatamente cheia"""
    capacity = calculator.capacity(sprint, 112)

    assert capacity.remaining == 0
    assert not capacity.is_over_capacity
    assert capacity.percentage == 100


def test_capacity_with_custom_daily_capacity(calculator, sprint):
    """Testa capacidade diária diferente da padrão"""
    daily = DailyCapacity(amount=5, unit=CapacityUnit.COMPLEXITY_POINTS)

    assert calculator.capacity(sprint, [], daily).total_capacity == 70


def test_capacity_rejects_hours(calculator, sprint):
    """Testa que horas de task não são usadas como pontos de sprint"""
    with pytest.raises(ConfigError):
        calculator.capacity(sprint, [1], TASK_DAILY_CAPACITY)


def test_capacity_rejects_inverted_window(calculator):
    """Testa janela com fim antes do início"""
    inverted = Sprint(id="X", start_date="2024-02-14", end_date="2024-02-01")

    with pytest.raises(ConfigError):
        calculator.capacity(inverted, [1])


def test_overlap_detected(calculator):
    """Testa sobreposição parcial entre sprints"""
    a = Sprint(id="A", name="A", start_date="2024-01-01", end_date="2024-01-14")
    b = Sprint(id="B", name="B", start_date="2024-01-10", end_date="2024-01-20")

    assert calculator.sprints_overlap(a, b)
    assert calculator.sprints_overlap(b, a)


@pytest.mark.parametrize("start,end,expected", [
    ("2024-01-14", "2024-01-20", True),   # compartilha o último dia
    ("2024-01-15", "2024-01-20", False),  # começa no dia seguinte
    ("2023-12-20", "2024-01-01", True),   # termina no primeiro dia
    ("2023-12-01", "2023-12-31", False),
    ("2024-01-03", "2024-01-05", True),   # contida
    ("2023-12-01", "2024-02-01", True),   # contém
])
def test_overlap_is_symmetric(calculator, start, end, expected):
    """Testa limites inclusivos e a simetria da sobreposição"""
    a = Sprint(id="A", start_date="2024-01-01", end_date="2024-01-14")
    b = Sprint(id="B", start_date=start, end_date=end)

    assert calculator.sprints_overlap(a, b) is expected
    assert calculator.sprints_overlap(b, a) is expected


def test_find_overlapping_sprint_ignores_sprint_being_edited(calculator, sprint, siblings):
    """Testa edição de uma sprint sem colidir com ela mesma"""
    edited = Sprint(id="C", name="Sprint C", start_date="2024-02-01", end_date="2024-02-10")

    assert calculator.find_overlapping_sprint(edited, siblings).id == "C"
    assert calculator.find_overlapping_sprint(edited, siblings, exclude_id="C") is None


def test_validate_dates(calculator):
    """Testa as regras de datas de sprint"""
    today = date(2024, 1, 10)

    past = calculator.validate_dates(date(2024, 1, 9), date(2024, 1, 20), today)
    same_day = calculator.validate_dates(date(2024, 1, 12), date(2024, 1, 12), today)
    inverted = calculator.validate_dates(date(2024, 1, 12), date(2024, 1, 11), today)
    starts_today = calculator.validate_dates(today, date(2024, 1, 24), today)

    assert past.reason == "A data de início não pode ser retroativa"
    assert same_day.reason == "A data final deve ser posterior à data inicial"
    assert not inverted.valid
    assert starts_today.valid


def test_validate_sprint_rejects_overlap(calculator, siblings):
    """Testa recusa de sprint com datas sobrepostas"""
    candidate = Sprint(id="B", name="Sprint B", start_date="2024-01-10", end_date="2024-01-20", org_id="O-1")

    result = calculator.validate_sprint(candidate, siblings, today=date(2024, 1, 1))

    assert not result.valid
    assert result.reason == 'Já existe uma sprint "Sprint A" com datas sobrepostas (01/01/2024 - 14/01/2024)'


def test_validate_sprint_accepts_free_window(calculator, siblings):
    """Testa sprint em janela livre"""
    candidate = Sprint(id="B", name="Sprint B", start_date="2024-01-15", end_date="2024-01-28")

    assert calculator.validate_sprint(candidate, siblings, today=date(2024, 1, 1)).valid


def test_calendar(calculator, sprint):
    """Testa a ocupação dia a dia da sprint"""
    items = [
        ScheduledItem(id="T-1", amount=6, due_date=date(2024, 2, 1)),
        ScheduledItem(id="T-2", amount=4, due_date=date(2024, 2, 1)),
        ScheduledItem(id="T-3", amount=4, due_date=date(2024, 2, 2)),
        ScheduledItem(id="T-4", amount=5, due_date=None),
        ScheduledItem(id="T-5", amount=3, due_date=date(2024, 3, 1)),
    ]

    calendar = calculator.calendar(sprint, items)

    assert calendar.total_days == 14
    assert calendar.work_days == 10
    assert calendar.items_count == 5
    assert calendar.items_with_date == 4
    assert calendar.total_amount == 14
    first = calendar.days[0]
    assert first.allocated == 10
    assert first.item_ids == ["T-1", "T-2"]
    assert first.is_over_capacity
    assert first.utilization_percent == 125
    assert calendar.days[1].utilization_percent == 50
    assert calendar.days[2].is_weekend
    assert [d.day for d in calendar.over_capacity_days] == [date(2024, 2, 1)]
    assert calendar.average_per_work_day == pytest.approx(1.4)


def test_calendar_rejects_points(calculator, sprint):
    """Testa que o calendário é medido em horas"""
    with pytest.raises(ConfigError):
        calculator.calendar(sprint, [], STORY_DAILY_CAPACITY)


def test_progress(calculator):
    """Testa horas estimadas contra realizadas"""
    items = [
        ScheduledItem(id="T-1", amount=10, actual_hours=4),
        ScheduledItem(id="T-2", amount=6, actual_hours=None),
    ]

    progress = calculator.progress(items)

    assert progress.total_capacity == 16
    assert progress.used == 4
    assert progress.remaining == 12
    assert progress.percentage == 25


def test_progress_without_estimates(calculator):
    """Testa sprint sem horas estimadas"""
    progress = calculator.progress([ScheduledItem(id="T-1", amount=0, actual_hours=3)])

    assert progress.percentage == 0
    assert progress.remaining == 0


@pytest.fixture
def mock_store(sprint, siblings):
    """Fixture para mock da fonte de dados de sprints"""
    store = Mock()
    store.load_sprint.return_value = sprint
    store.load_assigned_complexity_points.return_value = 120
    store.load_sibling_sprints.return_value = siblings
    store.load_sprint_tasks.return_value = [
        ScheduledItem(id="T-1", amount=8, due_date=date(2024, 2, 5), actual_hours=2),
    ]
    return store


def test_service_capacity_for(mock_store):
    """Testa a capacidade lida da fonte de dados"""
    capacity = SprintPlanningService(mock_store).capacity_for("S-1")

    assert capacity.total_capacity == 112
    assert capacity.is_over_capacity
    mock_store.load_assigned_complexity_points.assert_called_once_with("S-1")


def test_service_validate_candidate(mock_store):
    """Testa a validação com as sprints da organização"""
    service = SprintPlanningService(mock_store)
    candidate = Sprint(id="B", name="B", start_date="2024-01-10", end_date="2024-01-20", org_id="O-1")

    result = service.validate_candidate(candidate, today=date(2024, 1, 1))

    assert not result.valid
    mock_store.load_sibling_sprints.assert_called_once_with("O-1")


def test_service_validate_candidate_fails_closed(mock_store):
    """Testa recusa quando as sprints existentes não podem ser lidas"""
    mock_store.load_sibling_sprints.side_effect = LedgerFetchError("timeout")
    service = SprintPlanningService(mock_store)
    candidate = Sprint(id="B", name="B", start_date="2024-03-10", end_date="2024-03-20", org_id="O-1")

    result = service.validate_candidate(candidate, today=date(2024, 1, 1))

    assert not result.valid
    assert "Erro ao verificar sprints existentes" in result.reason


def test_service_calendar_and_progress(mock_store):
    """Testa calendário e progresso lidos da fonte de dados"""
    service = SprintPlanningService(mock_store)

    calendar = service.calendar_for("S-1")
    progress = service.progress_for("S-1")

    assert calendar.total_amount == 8
    assert progress.percentage == 25
