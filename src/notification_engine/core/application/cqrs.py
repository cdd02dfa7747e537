from __future__ import annotations

import math
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, Protocol, TypeVar

import structlog

# ───────────────────────────────────────────────
# CQRS com paginação e log de performance
# ───────────────────────────────────────────────

C = TypeVar('C')  # Command type
Q = TypeVar('Q')  # Query filtros type
R = TypeVar('R')  # Query result type
T = TypeVar('T')  # PagedResult item type

logger = structlog.get_logger(__name__)

# ───────────────────────────────────────────────
# DTOs
# ───────────────────────────────────────────────
@dataclass(frozen=True)
class CommandDTO:
    """Base para todos comandos de escrita."""
    pass

@dataclass(frozen=True)
class QueryDTO:
    """Base para consultas de leitura."""
    pass

@dataclass(frozen=True)
class PagedResult(Generic[T]):
    """Resultado paginado padrão."""
    items: Sequence[T]
    total: int
    page: int
    page_size: int
    total_pages: int = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, 'total_pages', math.ceil(self.total / self.page_size) if self.page_size else 0)

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_prev(self) -> bool:
        return self.page > 1

    def pagination(self) -> dict[str, Any]:
        return {
            "page": self.page,
            "limit": self.page_size,
            "total": self.total,
            "totalPages": self.total_pages,
            "hasNext": self.has_next,
            "hasPrev": self.has_prev,
        }

# ───────────────────────────────────────────────
# Handlers Protocols
# ───────────────────────────────────────────────
class CommandHandler(Protocol, Generic[C]):
    def handle(self, command: C) -> Any:
        """Processa um comando e aplica mudanças de estado."""
        ...

class QueryHandler(Protocol, Generic[Q, R]):
    def handle(self, query: Q) -> R:
        """Processa uma consulta e retorna um resultado."""
        ...

# ───────────────────────────────────────────────
# Buses com Logging
# ───────────────────────────────────────────────
class CommandBus:
    """Dispatcher de comandos com medição de performance."""
    def __init__(self) -> None:
        self._handlers: dict[type, CommandHandler] = {}

    def register(self, command_type: type[C], handler: CommandHandler[C]) -> None:
        self._handlers[command_type] = handler
        logger.debug("command_bus.registered", command=command_type.__name__)

    def dispatch(self, command: C) -> Any:
        handler = self._handlers.get(type(command))
        if not handler:
            raise ValueError(f"Nenhum handler para comando: {type(command).__name__}")
        start = time.perf_counter()
        logger.info("command_bus.dispatch", command=type(command).__name__)
        result = handler.handle(command)
        elapsed = time.perf_counter() - start
        logger.info("command_bus.done", command=type(command).__name__, duration=f"{elapsed:.3f}s")
        return result

class QueryBus:
    """Dispatcher de queries com medição de performance."""
    def __init__(self) -> None:
        self._handlers: dict[type, QueryHandler] = {}

    def register(self, query_type: type[QueryDTO], handler: QueryHandler[Any, Any]) -> None:
        self._handlers[query_type] = handler
        logger.debug("query_bus.registered", query=query_type.__name__)

    def dispatch(self, query: QueryDTO) -> Any:
        handler = self._handlers.get(type(query))
        if not handler:
            raise ValueError(f"Nenhum handler para query: {type(query).__name__}")
        start = time.perf_counter()
        result = handler.handle(query)
        elapsed = time.perf_counter() - start
        logger.debug("query_bus.done", query=type(query).__name__, duration=f"{elapsed:.3f}s")
        return result

class CommandBusImpl(CommandBus):
    """
    Implementação padrão de CommandBus; os handlers publicam os próprios
    eventos pelos serviços de aplicação.
    """
    pass

class QueryBusImpl(QueryBus):
    """
    Implementação padrão de QueryBus (herda toda a lógica de QueryBus).
    """
    pass
