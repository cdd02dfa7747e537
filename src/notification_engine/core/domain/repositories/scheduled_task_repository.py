from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class ScheduledTaskStateRepository(ABC):
    """
    Estado persistido das tarefas do agendador (toggle, próximo disparo,
    última execução). Os campos seguem os de `ScheduledTaskEntity`.
    """

    @abstractmethod
    def load(self, name: str, *, default_enabled: bool = True) -> dict[str, Any]:
        """Estado atual da tarefa; cria o registro na primeira consulta."""
        ...

    @abstractmethod
    def load_many(self, names: list[str]) -> dict[str, dict[str, Any]]:
        """Estados já persistidos, indexados por nome (ausentes ficam de fora)."""
        ...

    @abstractmethod
    def save(self, name: str, **fields: Any) -> None:
        ...
