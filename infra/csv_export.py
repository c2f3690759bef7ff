from __future__ import annotations

import csv
import io
from datetime import datetime
from pathlib import Path
from typing import Iterable, List, Sequence, Union

from domain.models import Observation, OutcomeKind

CSV_HEADER = ["Sequence", "Timestamp", "Host", "IPAddress", "RoundtripMs", "Status", "TTL", "BufferSize"]
MISSING_ADDRESS = "N/A"
TIMESTAMP_FMT = "%Y-%m-%d %H:%M:%S.%f"


class ExportError(Exception):
    pass


def _fmt_ts(ts: datetime) -> str:
    # yyyy-MM-dd HH:mm:ss.fff
    return ts.strftime(TIMESTAMP_FMT)[:-3]


def csv_row(ob: Observation) -> List[object]:
    return [
        ob.sequence,
        _fmt_ts(ob.timestamp),
        ob.target,
        ob.resolved_address or MISSING_ADDRESS,
        ob.round_trip_ms,
        ob.outcome.value,
        ob.ttl,
        ob.payload_size,
    ]


def _write_rows(f, snapshot: Iterable[Observation]) -> int:
    w = csv.writer(f, lineterminator="\r\n")
    w.writerow(CSV_HEADER)
    n = 0
    for ob in snapshot:
        w.writerow(csv_row(ob))
        n += 1
    return n


def render_csv(snapshot: Sequence[Observation]) -> str:
    buf = io.StringIO()
    _write_rows(buf, snapshot)
    return buf.getvalue()


def default_export_filename(now: datetime) -> str:
    return f"ping_results_{now:%Y%m%d_%H%M%S}.csv"


def export_csv(snapshot: Sequence[Observation], path: Union[str, Path]) -> int:
    """
    Grava o snapshot (cabeçalho + uma linha por observação).
    Snapshot vazio não gera arquivo.
    """
    if not snapshot:
        raise ExportError("No results to export.")
    p = Path(path)
    try:
        with open(p, "w", newline="", encoding="utf-8") as f:
            return _write_rows(f, snapshot)
    except OSError as exc:
        raise ExportError(f"Failed to export: {exc}") from exc


def read_csv(path: Union[str, Path]) -> List[Observation]:
    """Lê de volta um arquivo exportado (mesmo formato)."""
    out: List[Observation] = []
    with open(path, "r", newline="", encoding="utf-8") as f:
        r = csv.reader(f)
        header = next(r, None)
        if header != CSV_HEADER:
            raise ExportError(f"Cabeçalho inesperado: {header}")
        for row in r:
            if not row:
                continue
            seq, ts, host, addr, rtt, status, ttl, size = row
            out.append(
                Observation(
                    sequence=int(seq),
                    timestamp=datetime.strptime(ts, TIMESTAMP_FMT),
                    target=host,
                    resolved_address=None if addr == MISSING_ADDRESS else addr,
                    round_trip_ms=int(rtt),
                    outcome=OutcomeKind.parse(status),
                    ttl=int(ttl),
                    payload_size=int(size),
                )
            )
    return out
