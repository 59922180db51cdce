class ConfigError(ValueError):
    """Entrada malformada: datas inválidas, janelas invertidas ou unidades trocadas"""


class LedgerFetchError(Exception):
    """Falha ao ler os itens agendados ou as sprints da fonte de dados"""
