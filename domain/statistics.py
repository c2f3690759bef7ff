from __future__ import annotations

from typing import Iterable, Optional

from .models import Observation, Statistics

UNAVAILABLE = "-"


def compute_statistics(observations: Iterable[Observation]) -> Statistics:
    """
    Estatísticas do ledger inteiro, sempre recalculadas do zero.
    Sem somas acumuladas: o que foi removido pela retenção some das estatísticas.
    """
    sent = 0
    rtts: list[int] = []
    for ob in observations:
        sent += 1
        if ob.is_success:
            rtts.append(ob.round_trip_ms)

    received = len(rtts)
    if sent == 0:
        return Statistics()

    loss = (sent - received) / sent * 100.0

    if not rtts:
        return Statistics(sent=sent, received=0, loss_percent=loss)

    return Statistics(
        sent=sent,
        received=received,
        loss_percent=loss,
        min_ms=min(rtts),
        avg_ms=sum(rtts) / float(received),
        max_ms=max(rtts),
    )


def _fmt_ms(value: Optional[float], spec: str = "") -> str:
    if value is None:
        return UNAVAILABLE
    return format(value, spec)


def format_statistics(stats: Statistics) -> str:
    return (
        f"Packets: {stats.sent} sent, {stats.received} received, "
        f"{stats.loss_percent:.1f}% loss | "
        f"Min: {_fmt_ms(stats.min_ms)}ms, Max: {_fmt_ms(stats.max_ms)}ms, "
        f"Avg: {_fmt_ms(stats.avg_ms, '.1f')}ms"
    )
