from __future__ import annotations

import threading
from collections import deque
from typing import Callable, Deque, List, Optional, Sequence

from domain.chart import chart_line, latency_band
from domain.models import Observation, Statistics
from domain.ports import Clock, ResultSink
from domain.statistics import format_statistics

DEFAULT_DISPLAY_RETENTION = 1000


class ConsoleSink(ResultSink):
    """
    Saída "tela": uma linha por observação + linha de estatísticas.

    Mantém o log exibido (observações e mensagens) com o mesmo limite
    FIFO do ledger, para não crescer sem fim em sessões longas.
    """

    def __init__(
        self,
        clock: Clock,
        *,
        retention: int = DEFAULT_DISPLAY_RETENTION,
        show_stats: bool = True,
        show_chart: bool = False,
        write: Callable[[str], None] = lambda s: print(s, flush=True),
    ):
        self.clock = clock
        self.show_stats = show_stats
        self.show_chart = show_chart
        self._write = write

        self._lock = threading.Lock()
        self._lines: Deque[str] = deque(maxlen=int(retention))
        self._chart: Deque[str] = deque(maxlen=int(retention))
        self.last_stats_line: str = format_statistics(Statistics())

    def on_observation(self, observation: Observation, statistics: Statistics) -> None:
        line = observation.display_line()
        stats_line = format_statistics(statistics)
        bar = f"{chart_line(observation)} [{latency_band(observation)}]"
        with self._lock:
            self._lines.append(line)
            self._chart.append(bar)
            self.last_stats_line = stats_line

        out = [line]
        if self.show_chart:
            out.append(bar)
        if self.show_stats:
            out.append(stats_line)
        self._write("\n".join(out))

    def on_log_line(self, line: str) -> None:
        stamped = f"[{self.clock.now():%H:%M:%S}] {line}"
        with self._lock:
            self._lines.append(stamped)
        self._write(stamped)

    def display_lines(self) -> List[str]:
        with self._lock:
            return list(self._lines)

    def chart_lines(self) -> List[str]:
        with self._lock:
            return list(self._chart)

    def on_cleared(self, statistics: Statistics) -> None:
        stats_line = format_statistics(statistics)
        with self._lock:
            self._lines.clear()
            self._chart.clear()
            self.last_stats_line = stats_line
        if self.show_stats:
            self._write(stats_line)


class FanOutSink(ResultSink):
    """Repassa para vários sinks, na ordem."""

    def __init__(self, sinks: Sequence[ResultSink]):
        self.sinks = list(sinks)

    def on_observation(self, observation: Observation, statistics: Statistics) -> None:
        for s in self.sinks:
            s.on_observation(observation, statistics)

    def on_log_line(self, line: str) -> None:
        for s in self.sinks:
            s.on_log_line(line)

    def on_cleared(self, statistics: Statistics) -> None:
        for s in self.sinks:
            s.on_cleared(statistics)


class NoopSink(ResultSink):
    def on_observation(self, observation: Observation, statistics: Statistics) -> None:
        pass

    def on_log_line(self, line: str) -> None:
        pass

    def on_cleared(self, statistics: Statistics) -> None:
        pass


def build_sink(sinks: Sequence[Optional[ResultSink]]) -> ResultSink:
    real = [s for s in sinks if s is not None]
    if not real:
        return NoopSink()
    if len(real) == 1:
        return real[0]
    return FanOutSink(real)
