from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Tuple

from domain.models import Observation, Statistics
from domain.statistics import compute_statistics

DEFAULT_RETENTION = 1000


class ObservationLedger:
    """
    Histórico limitado (FIFO) das observações da sessão.

    - Capacidade fixa: ao passar do limite, remove as mais antigas primeiro
    - snapshot() devolve tupla imutável, tirada sob o lock
      (nunca enxerga um append pela metade)
    """

    def __init__(self, capacity: int = DEFAULT_RETENTION):
        if capacity < 1:
            raise ValueError(f"capacity deve ser >= 1 (recebido {capacity})")
        self.capacity = int(capacity)

        self._lock = threading.Lock()
        self._items: Deque[Observation] = deque()
        self.total_evicted = 0

    def append(self, ob: Observation) -> Statistics:
        """Adiciona, aplica retenção e devolve as estatísticas já recalculadas."""
        with self._lock:
            self._items.append(ob)
            while len(self._items) > self.capacity:
                self._items.popleft()
                self.total_evicted += 1
            return compute_statistics(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
            self.total_evicted = 0

    def snapshot(self) -> Tuple[Observation, ...]:
        with self._lock:
            return tuple(self._items)

    def statistics(self) -> Statistics:
        with self._lock:
            return compute_statistics(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
