import argparse
from pathlib import Path

from scanrules.parsers.request import Request, load_response
from scanrules.core.config import ScanConfig, load_config
from scanrules.core.diagnostics import DiagnosticCollector
from scanrules.core.engine import Engine
from scanrules.core.errors import ConfigError, ParseError
from scanrules.core.models import AlertThreshold, AttackStrength, Tech
from scanrules.core.registry import default_registry
from scanrules.reporters.console import Log
from scanrules.reporters.export import write_alerts


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="scanrules", description="Heuristic HTTP scan rules")
    p.add_argument("--request", action="append", required=True,
                   help="Raw request file (repeatable)")
    p.add_argument("--response", action="append", default=[],
                   help="Raw response file matching the --request at the same position")
    p.add_argument("--active", action="store_true", help="Also run the active rules")
    p.add_argument("--strength", choices=[s.name.lower() for s in AttackStrength])
    p.add_argument("--threshold", choices=[t.name.lower() for t in AlertThreshold])
    p.add_argument("--tech", action="append", default=[],
                   help="Target technology, e.g. PHP (repeatable, default: all)")
    p.add_argument("--config", help="YAML scan configuration")
    p.add_argument("--out", help="Write alerts to FILE (.json or JSON Lines, - for stdout)")
    p.add_argument("--proxy", help="Proxy (e.g. http://127.0.0.1:8080)")
    p.add_argument("--request-proto", default="https", choices=["http", "https"])
    p.add_argument("--threads", type=int, help="Worker threads")
    p.add_argument("--diag-log", help="Append sanitized auth diagnostics to FILE")
    p.add_argument("-v", "--verbose", action="count", default=1, help="-v, -vv")
    return p


def apply_args(cfg: ScanConfig, args: argparse.Namespace) -> ScanConfig:
    """CLI flags win over the config file."""
    if args.strength:
        cfg.strength = AttackStrength.parse(args.strength)
    if args.threshold:
        cfg.threshold = AlertThreshold.parse(args.threshold)
    if args.tech:
        cfg.technologies = frozenset(Tech.parse(t) for t in args.tech)
    if args.active:
        cfg.active = True
    if args.proxy:
        cfg.proxy = args.proxy
    if args.threads:
        cfg.threads = args.threads
    if args.diag_log:
        cfg.diagnostics.enabled = True
        cfg.diagnostics.log_file = args.diag_log
    return cfg


def file_sink(path: str):
    def sink(text: str):
        with open(path, "a", encoding="utf-8") as f:
            f.write(text)
    return sink


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    log = Log(verbose=args.verbose)

    try:
        cfg = load_config(Path(args.config)) if args.config else ScanConfig()
        cfg = apply_args(cfg, args)
        if len(args.response) > len(args.request):
            raise ParseError("more --response files than --request files")
        txs = []
        for i, filename in enumerate(args.request):
            tx = Request(filename, protocol=args.request_proto).parse()
            if i < len(args.response):
                tx = load_response(args.response[i], tx)
            txs.append(tx)
    except (ConfigError, ParseError) as exc:
        log.error(str(exc))
        return 1

    collector = None
    if cfg.diagnostics.enabled and cfg.diagnostics.log_file:
        collector = DiagnosticCollector(sink=file_sink(cfg.diagnostics.log_file), logger=log)
        collector.set_credentials(cfg.diagnostics.username, cfg.diagnostics.password)
        collector.set_enabled(True)

    alerts = []
    engine = Engine(default_registry(logger=log), config=cfg, logger=log,
                    on_alert=alerts.append, collector=collector)
    try:
        engine.process_all(txs)
    except KeyboardInterrupt:
        engine.stop()
        log.warn("Interrupted, partial results only")
    finally:
        engine.close()

    counts = engine.summary(alerts)
    if alerts:
        log.ok(f"{len(alerts)} alert(s): " +
               ", ".join(f"{k}={v}" for k, v in sorted(counts.items())))
    else:
        log.info("No alerts raised")
    if args.out:
        write_alerts(alerts, Path(args.out))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
