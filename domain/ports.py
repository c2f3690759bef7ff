from __future__ import annotations

from datetime import datetime
from typing import Protocol

from .models import Observation, ProbeOptions, ProbeOutcome, Statistics


class ProbeError(Exception):
    """
    Falha da camada de probe (resolução de nome, socket, binário ausente...).
    O engine converte em Observation com status Unknown; nunca sobe para o chamador.
    """


class Clock(Protocol):
    def now(self) -> datetime: ...


class Prober(Protocol):
    def probe(
        self,
        target: str,
        timeout_ms: int,
        payload: bytes,
        options: ProbeOptions,
    ) -> ProbeOutcome:
        """Um único echo request/reply. Pode levantar ProbeError."""
        ...


class ResultSink(Protocol):
    def on_observation(self, observation: Observation, statistics: Statistics) -> None: ...

    def on_log_line(self, line: str) -> None: ...

    def on_cleared(self, statistics: Statistics) -> None:
        """Resultados limpos: descartar o que foi exibido; statistics já vem vazia."""
        ...
