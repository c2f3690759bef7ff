from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Sequence

from .models import Observation

Band = Literal["green", "yellow", "red", "timeout"]

MS_PER_BAR = 5
MAX_BAR_LEN = 50


@dataclass(frozen=True)
class LatencyBand:
    upper_ms: float  # exclusivo
    band: Band

    def matches(self, latency_ms: float) -> bool:
        return latency_ms < self.upper_ms


DEFAULT_BANDS: tuple[LatencyBand, ...] = (
    LatencyBand(upper_ms=50, band="green"),
    LatencyBand(upper_ms=150, band="yellow"),
)


def latency_band(ob: Observation, bands: Sequence[LatencyBand] = DEFAULT_BANDS) -> Band:
    if not ob.is_success:
        return "timeout"
    for b in bands:
        if b.matches(ob.round_trip_ms):
            return b.band
    return "red"


def chart_line(ob: Observation) -> str:
    """
    Linha do gráfico texto: "0007: |||| 21ms".
    Falha conta como 0ms (barra vazia).
    """
    latency = ob.round_trip_ms if ob.is_success else 0
    bar = "|" * min(latency // MS_PER_BAR, MAX_BAR_LEN)
    return f"{ob.sequence:04d}: {bar} {latency}ms"
