"""
Planejador de Capacidade Diária e de Sprints

Este pacote implementa a regra de capacidade diária usada no agendamento de tasks
(alocação gulosa dia a dia com teto de 8h/dia e limite de segurança de 30 dias) e o
cálculo de capacidade de sprints (capacidade total, sobreposição de datas e calendário).
"""

__version__ = "1.0.0"
