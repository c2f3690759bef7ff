from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from app.ledger import DEFAULT_RETENTION
from domain.validation import InvalidParameterError, ProbeParameters, validate_parameters


@dataclass(frozen=True)
class ProberConfig:
    kind: str = "system"  # "system" | "fake"
    ping_bin: Optional[str] = None


@dataclass(frozen=True)
class ExportConfig:
    csv_path: Optional[str] = None  # None -> ping_results_<stamp>.csv
    on_exit: bool = False


@dataclass(frozen=True)
class HttpSinkConfig:
    enabled: bool = False
    url: str = ""

    queue_max: int = 5000
    timeout_sec: float = 2.0
    max_retries: int = 3
    drop_on_full: bool = True


@dataclass(frozen=True)
class AppConfig:
    host: str = "8.8.8.8"
    timeout_ms: int = 1000
    payload_size: int = 32
    interval_ms: int = 1000

    retention: int = DEFAULT_RETENTION
    log_level: str = "INFO"
    show_chart: bool = False

    prober: ProberConfig = field(default_factory=ProberConfig)
    export: ExportConfig = field(default_factory=ExportConfig)
    http_sink: Optional[HttpSinkConfig] = None

    def parameters(self) -> ProbeParameters:
        return validate_parameters(self.host, self.timeout_ms, self.payload_size, self.interval_ms)


def _req(d: Mapping[str, Any], path: str) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            raise ValueError(f"Config inválida: campo obrigatório '{path}' ausente.")
        cur = cur[part]
    return cur


def _opt(d: Mapping[str, Any], path: str, default: Any) -> Any:
    cur: Any = d
    for part in path.split("."):
        if not isinstance(cur, Mapping) or part not in cur:
            return default
        cur = cur[part]
    return cur


def _int(d: Mapping[str, Any], path: str, default: int) -> int:
    raw = _opt(d, path, default)
    try:
        return int(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Config inválida: '{path}' deve ser inteiro (recebido {raw!r}).") from e


def load_config(path: str = "config.yaml") -> AppConfig:
    """
    Lê o YAML. Arquivo ausente = defaults.
    Os quatro parâmetros do ping passam pelo mesmo validador do engine.
    """
    p = Path(path)
    data: Any = {}
    if p.exists():
        data = yaml.safe_load(p.read_text(encoding="utf-8")) or {}
    if not isinstance(data, Mapping):
        raise ValueError(f"Config inválida: '{path}' deve conter um mapa (dict).")

    return config_from_mapping(data)


def config_from_mapping(data: Mapping[str, Any]) -> AppConfig:
    host = str(_opt(data, "host", AppConfig.host)).strip()
    timeout_ms = _int(data, "timeout_ms", AppConfig.timeout_ms)
    payload_size = _int(data, "payload_size", AppConfig.payload_size)
    interval_ms = _int(data, "interval_ms", AppConfig.interval_ms)

    try:
        validate_parameters(host, timeout_ms, payload_size, interval_ms)
    except InvalidParameterError as e:
        raise ValueError(f"Config inválida: '{e.field}': {e}") from e

    retention = _int(data, "retention", DEFAULT_RETENTION)
    if retention < 1:
        raise ValueError("Config inválida: 'retention' deve ser >= 1.")

    log_level = str(_opt(data, "log_level", "INFO")).upper()
    show_chart = bool(_opt(data, "show_chart", False))

    # ---- prober ----
    kind = str(_opt(data, "prober.kind", "system")).lower()
    if kind not in {"system", "fake"}:
        raise ValueError(f"Config inválida: 'prober.kind' desconhecido: {kind}")
    ping_bin = _opt(data, "prober.ping_bin", None)
    prober = ProberConfig(kind=kind, ping_bin=str(ping_bin) if ping_bin else None)

    # ---- export (opcional) ----
    csv_path = _opt(data, "export.csv_path", None)
    export = ExportConfig(
        csv_path=str(csv_path) if csv_path else None,
        on_exit=bool(_opt(data, "export.on_exit", False)),
    )

    # ---- http_sink (opcional) ----
    hs_raw = _opt(data, "http_sink", None)
    http_sink = None
    if isinstance(hs_raw, Mapping) and bool(_opt(hs_raw, "enabled", True)):
        http_sink = HttpSinkConfig(
            enabled=True,
            url=str(_req(hs_raw, "url")),
            queue_max=_int(hs_raw, "queue_max", 5000),
            timeout_sec=float(_opt(hs_raw, "timeout_sec", 2.0)),
            max_retries=_int(hs_raw, "max_retries", 3),
            drop_on_full=bool(_opt(hs_raw, "drop_on_full", True)),
        )

    return AppConfig(
        host=host,
        timeout_ms=timeout_ms,
        payload_size=payload_size,
        interval_ms=interval_ms,
        retention=retention,
        log_level=log_level,
        show_chart=show_chart,
        prober=prober,
        export=export,
        http_sink=http_sink,
    )
