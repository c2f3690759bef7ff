from __future__ import annotations

import argparse
import dataclasses

from app.engine import ProbeEngine
from config import AppConfig, load_config
from domain.ports import Prober
from domain.validation import InvalidParameterError
from infra.clock import SystemClock
from infra.csv_export import ExportError, default_export_filename, export_csv
from infra.fake_prober import FakeProber, demo_script
from infra.http_sink import HttpObservationSink
from infra.logging import configure_logging, get_logger
from infra.ping_prober import DEFAULT_PING_BIN, SystemPingProber
from infra.sinks import ConsoleSink, build_sink


def build_argparser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(description="Continuous ping with live statistics and CSV export")
    ap.add_argument("host", nargs="?", help="Target hostname or IP (default: from config)")
    ap.add_argument("--config", default="config.yaml", help="YAML config file (optional)")
    ap.add_argument("--timeout", type=int, help="Timeout per echo (ms, 100-30000)")
    ap.add_argument("--size", type=int, help="Payload size (bytes, 1-65500)")
    ap.add_argument("--interval", type=int, help="Interval between echoes (ms, 100-60000)")
    ap.add_argument("--fake", action="store_true", help="Use a scripted prober (no network)")
    ap.add_argument("--chart", action="store_true", help="Print the text latency chart line")
    ap.add_argument(
        "--export",
        nargs="?",
        const="",
        default=None,
        help="Export results to CSV on exit (optional path; default ping_results_<stamp>.csv)",
    )
    ap.add_argument("--log-level", help="structlog level (DEBUG, INFO, WARNING...)")
    return ap


def _apply_args(cfg: AppConfig, args: argparse.Namespace) -> AppConfig:
    changes = {}
    if args.host:
        changes["host"] = args.host.strip()
    if args.timeout is not None:
        changes["timeout_ms"] = args.timeout
    if args.size is not None:
        changes["payload_size"] = args.size
    if args.interval is not None:
        changes["interval_ms"] = args.interval
    if args.log_level:
        changes["log_level"] = args.log_level.upper()
    if args.chart:
        changes["show_chart"] = True
    if args.fake:
        changes["prober"] = dataclasses.replace(cfg.prober, kind="fake")
    if args.export is not None:
        changes["export"] = dataclasses.replace(
            cfg.export,
            on_exit=True,
            csv_path=args.export or cfg.export.csv_path,
        )
    return dataclasses.replace(cfg, **changes)


def _build_prober(cfg: AppConfig) -> Prober:
    if cfg.prober.kind == "fake":
        return FakeProber(demo_script(), cycle=True)
    return SystemPingProber(ping_bin=cfg.prober.ping_bin or DEFAULT_PING_BIN)


def main(argv=None) -> int:
    args = build_argparser().parse_args(argv)

    try:
        cfg = _apply_args(load_config(args.config), args)
        params = cfg.parameters()
    except ValueError as e:
        raise SystemExit(str(e))

    configure_logging(cfg.log_level)
    log = get_logger("main")

    clock = SystemClock()
    console = ConsoleSink(clock, retention=cfg.retention, show_chart=cfg.show_chart)

    http_sink = None
    if cfg.http_sink is not None:
        http_sink = HttpObservationSink(
            cfg.http_sink.url,
            queue_max=cfg.http_sink.queue_max,
            timeout_sec=cfg.http_sink.timeout_sec,
            max_retries=cfg.http_sink.max_retries,
            drop_on_full=cfg.http_sink.drop_on_full,
        )
        http_sink.start()
        log.info("http_sink_enabled", url=cfg.http_sink.url)

    engine = ProbeEngine(
        _build_prober(cfg),
        clock,
        build_sink([console, http_sink]),
        retention=cfg.retention,
    )

    try:
        try:
            engine.start(params.host, params.timeout_ms, params.payload_size, params.interval_ms)
        except InvalidParameterError as e:
            raise SystemExit(str(e))

        print("Press ENTER to stop...", flush=True)
        try:
            input()
        except (EOFError, KeyboardInterrupt):
            pass
    finally:
        engine.stop()
        engine.wait(timeout=params.timeout_ms / 1000.0 + 5)
        if http_sink is not None:
            http_sink.stop()

    print(console.last_stats_line, flush=True)

    if cfg.export.on_exit:
        path = cfg.export.csv_path or default_export_filename(clock.now())
        try:
            n = export_csv(engine.snapshot(), path)
        except ExportError as e:
            log.warning("export_failed", path=path, error=str(e))
            print(e, flush=True)
            return 1
        console.on_log_line(f"Exported {n} results to {path}")

    return 1 if engine.last_error is not None else 0


if __name__ == "__main__":
    raise SystemExit(main())
