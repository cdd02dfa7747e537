from __future__ import annotations

import time
from collections.abc import Callable

from django.core.cache import caches


class SlidingWindowRateLimiter:
    """
    Limite de envios por janela deslizante (padrão: por minuto), contado no
    cache compartilhado para valer entre processos (web, worker, motor).

    Contadores por janela fixa (`incr`) com peso da janela anterior
    proporcional ao trecho ainda coberto: estimativa da janela deslizante
    sem guardar cada envio.
    """

    KEY_PREFIX = "ratelimit"

    def __init__(
        self,
        key: str,
        max_requests: int,
        window_seconds: float = 60.0,
        *,
        cache=None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        if max_requests < 1:
            raise ValueError("max_requests deve ser >= 1")
        self.key = key
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._cache_override = cache
        self._clock = clock

    @property
    def _cache(self):
        return self._cache_override if self._cache_override is not None else caches["default"]

    def _bucket(self, index: int) -> str:
        return f"{self.KEY_PREFIX}:{self.key}:{index}"

    def _window(self) -> tuple[int, float, int, int]:
        """(índice da janela atual, segundos decorridos nela, contagem atual, contagem anterior)"""
        now = self._clock()
        index = int(now // self.window_seconds)
        elapsed = now - index * self.window_seconds
        counts = self._cache.get_many([self._bucket(index), self._bucket(index - 1)])
        return index, elapsed, counts.get(self._bucket(index), 0), counts.get(self._bucket(index - 1), 0)

    def _estimate(self, elapsed: float, current: int, previous: int) -> float:
        return current + previous * (1 - elapsed / self.window_seconds)

    def try_acquire(self) -> bool:
        """Registra um envio se houver capacidade na janela."""
        index, elapsed, current, previous = self._window()
        if self._estimate(elapsed, current, previous) >= self.max_requests:
            return False

        bucket = self._bucket(index)
        # a chave precisa sobreviver à janela seguinte, onde entra como "anterior"
        timeout = int(self.window_seconds * 2) + 1
        self._cache.add(bucket, 0, timeout)
        try:
            count = self._cache.incr(bucket)
        except ValueError:
            # expirou entre o add e o incr
            self._cache.add(bucket, 1, timeout)
            count = 1
        if self._estimate(elapsed, count, previous) > self.max_requests:
            self._cache.decr(bucket)
            return False
        return True

    def retry_after(self) -> float:
        """Segundos até a próxima vaga na janela."""
        _, elapsed, current, previous = self._window()
        if self._estimate(elapsed, current, previous) < self.max_requests:
            return 0.0
        if current >= self.max_requests:
            return max(0.0, self.window_seconds - elapsed)
        # vaga abre quando o peso da janela anterior cair o suficiente
        opens_at = self.window_seconds * (1 - (self.max_requests - current) / previous)
        return max(0.0, opens_at - elapsed)

    @property
    def current_count(self) -> int:
        _, elapsed, current, previous = self._window()
        return int(self._estimate(elapsed, current, previous))
