import json
import os
import threading
from contextlib import contextmanager
from datetime import date
from pathlib import Path
from typing import Dict, Iterator, List, Optional
from loguru import logger
from pydantic import ValidationError

from ..models.entities import ScheduledItem, Sprint
from ..models.errors import LedgerFetchError


class JsonWorkItemStore:
    """Fonte de dados de tasks, user stories e sprints gravada em um arquivo JSON"""

    def __init__(self, data_file: str):
        """
        Inicializa a fonte de dados

        Args:
            data_file: Caminho do arquivo JSON com as chaves "tasks", "user_stories" e "sprints"
        """
        self.data_file = Path(data_file)
        self._lock = threading.RLock()

        logger.info(f"Fonte de dados inicializada em {self.data_file}")

    def _read(self) -> dict:
        """Lê o arquivo de dados inteiro"""
        try:
            return json.loads(self.data_file.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise LedgerFetchError(f"Erro ao ler arquivo {self.data_file}: {str(e)}") from e

    def _write(self, data: dict) -> None:
        """Grava o arquivo de dados substituindo o anterior de uma vez"""
        tmp_path = self.data_file.with_suffix(self.data_file.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        os.replace(tmp_path, self.data_file)

    @contextmanager
    def transaction(self) -> Iterator["JsonWorkItemStore"]:
        """
        Serializa leitura, validação e escrita dentro do processo

        O arquivo JSON não oferece transação entre processos diferentes.
        """
        with self._lock:
            yield self

    def _to_item(self, row: dict) -> Optional[ScheduledItem]:
        """
        Converte uma linha da tabela de tasks para ScheduledItem

        Args:
            row: Linha com id, estimated_hours, due_date e deleted_at

        Returns:
            Optional[ScheduledItem]: Item convertido ou None se a linha for inválida
        """
        try:
            return ScheduledItem(
                id=str(row["id"]),
                amount=row.get("estimated_hours"),
                due_date=row.get("due_date"),
                deleted_at=row.get("deleted_at"),
                project_id=row.get("project_id"),
                sprint_id=row.get("sprint_id"),
                actual_hours=row.get("actual_hours"),
            )
        except (KeyError, ValidationError) as e:
            logger.warning(f"Task ignorada por dados inválidos: {row.get('id')} ({str(e)})")
            return None

    def load_scheduled_items(self, project_id: str, exclude_id: Optional[str] = None) -> List[ScheduledItem]:
        """
        Obtém as tasks do projeto com data de vencimento

        Args:
            project_id: ID do projeto
            exclude_id: ID da task em edição, que não entra na soma

        Returns:
            List[ScheduledItem]: Tasks com data e não removidas
        """
        data = self._read()
        items = []
        for row in data.get("tasks", []):
            if str(row.get("project_id")) != str(project_id):
                continue
            if row.get("due_date") is None or row.get("deleted_at") is not None:
                continue
            if exclude_id is not None and str(row.get("id")) == str(exclude_id):
                continue
            item = self._to_item(row)
            if item:
                items.append(item)

        logger.debug(f"Obtidas {len(items)} tasks com data do projeto {project_id}")
        return items

    def load_sprint(self, sprint_id: str) -> Sprint:
        """
        Obtém uma sprint pelo ID

        Raises:
            LedgerFetchError: Se a sprint não existir
        """
        for row in self._read().get("sprints", []):
            if str(row.get("id")) == str(sprint_id):
                return Sprint(**row)
        raise LedgerFetchError(f"Sprint {sprint_id} não encontrada")

    def load_sibling_sprints(self, org_id: str) -> List[Sprint]:
        """
        Obtém todas as sprints da organização

        Args:
            org_id: ID da organização

        Returns:
            List[Sprint]: Sprints da organização
        """
        sprints = [
            Sprint(**row)
            for row in self._read().get("sprints", [])
            if str(row.get("org_id")) == str(org_id)
        ]
        logger.debug(f"Obtidas {len(sprints)} sprints da organização {org_id}")
        return sprints

    def _stories_by_id(self, data: dict) -> Dict[str, dict]:
        return {
            str(us["id"]): us
            for us in data.get("user_stories", [])
            if us.get("deleted_at") is None
        }

    def load_assigned_complexity_points(self, sprint_id: str) -> float:
        """
        Soma os pontos de complexidade das user stories da sprint

        Args:
            sprint_id: ID da sprint

        Returns:
            float: Pontos atribuídos (pontos nulos contam como zero)
        """
        stories = self._stories_by_id(self._read()).values()
        return sum(
            us.get("story_points") or 0
            for us in stories
            if str(us.get("sprint_id")) == str(sprint_id)
        )

    def load_sprint_tasks(self, sprint_id: str) -> List[ScheduledItem]:
        """
        Obtém as tasks da sprint, diretamente ou pela user story pai

        Args:
            sprint_id: ID da sprint

        Returns:
            List[ScheduledItem]: Tasks não removidas, com ou sem data
        """
        data = self._read()
        stories = self._stories_by_id(data)
        items = []
        for row in data.get("tasks", []):
            if row.get("deleted_at") is not None:
                continue
            story = stories.get(str(row.get("user_story_id")))
            row_sprint = row.get("sprint_id") or (story or {}).get("sprint_id")
            if str(row_sprint) != str(sprint_id):
                continue
            item = self._to_item({**row, "sprint_id": row_sprint})
            if item:
                items.append(item)
        return items

    def save_scheduled_item(self, project_id: str, item_id: str, due_date: date, amount: float) -> ScheduledItem:
        """
        Grava data de vencimento e horas estimadas de uma task, criando-a se não existir

        Args:
            project_id: ID do projeto
            item_id: ID da task
            due_date: Nova data de vencimento
            amount: Novas horas estimadas

        Returns:
            ScheduledItem: Task gravada
        """
        with self._lock:
            data = self._read()
            tasks = data.setdefault("tasks", [])
            row = next((t for t in tasks if str(t.get("id")) == str(item_id)), None)
            if row is None:
                row = {"id": item_id, "project_id": project_id}
                tasks.append(row)
            row["due_date"] = due_date.isoformat()
            row["estimated_hours"] = amount
            self._write(data)

        logger.info(f"Task {item_id} gravada: vencimento={due_date.isoformat()}, horas={amount}")
        return self._to_item(row)
