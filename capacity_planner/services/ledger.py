from typing import Optional
from loguru import logger

from ..models.entities import LedgerLoadResult, LedgerSnapshot


class CapacityLedger:
    """Leitura das tasks já agendadas de um projeto, base para a regra de capacidade diária"""

    def __init__(self, store):
        """
        Inicializa o ledger

        Args:
            store: Fonte de dados com o método load_scheduled_items(project_id, exclude_id)
        """
        self.store = store

    def load(self, project_id: str, exclude_id: Optional[str] = None) -> LedgerLoadResult:
        """
        Lê uma fotografia nova das tasks com data do projeto

        Apenas tasks com data e não removidas entram; a task em edição é ignorada
        para não colidir com ela mesma. Falhas de leitura nunca são propagadas: viram
        um LedgerLoadResult com erro e quem chama decide o que fazer.

        Args:
            project_id: ID do projeto
            exclude_id: ID da task em edição

        Returns:
            LedgerLoadResult: Fotografia do ledger ou o erro da leitura
        """
        try:
            rows = self.store.load_scheduled_items(project_id, exclude_id)
        except Exception as e:
            logger.error(f"Erro ao carregar tasks agendadas do projeto {project_id}: {str(e)}")
            return LedgerLoadResult.failure(str(e))

        items = [
            item
            for item in rows or []
            if item.due_date is not None
            and not item.is_deleted
            and (exclude_id is None or item.id != str(exclude_id))
        ]
        logger.debug(f"Ledger do projeto {project_id}: {len(items)} tasks com data")
        return LedgerLoadResult.success(LedgerSnapshot(project_id=project_id, items=items))
