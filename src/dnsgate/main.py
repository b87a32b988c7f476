from __future__ import annotations

import argparse
import logging
import signal
import threading
from typing import List, Optional

from .config.config_parser import ConfigError, DnsgateConfig, parse_config_file
from .config.logging_config import init_logging
from .denial_log import DenialLog
from .records import LoadError, RecordStore
from .servers.resolver import ResolutionEngine
from .servers.transports.doh_json import JsonResolverClient
from .servers.udp_server import DNSServer
from .whitelist import Whitelist


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Whitelist-gated DNS relay with local records"
    )
    parser.add_argument("--config", default=None, help="Path to YAML config")
    parser.add_argument("--host", default=None, help="Listen address")
    parser.add_argument("--port", type=int, default=None, help="Listen UDP port")
    parser.add_argument("--records", default=None, help="Local records file")
    parser.add_argument("--whitelist", default=None, help="Whitelist file")
    parser.add_argument("--denied-log", default=None, help="Denied names log file")
    parser.add_argument(
        "--log-level", default=None, help="debug, info, warn, error or crit"
    )
    return parser


def apply_cli_overrides(cfg: DnsgateConfig, args: argparse.Namespace) -> DnsgateConfig:
    """
    Brief: Apply command-line overrides on top of the file configuration.

    Inputs:
      - cfg: DnsgateConfig parsed from YAML (mutated in-place).
      - args: argparse namespace; None values leave the config untouched.

    Outputs:
      - DnsgateConfig: the same cfg object.
    """
    if args.host is not None:
        cfg.listen.host = args.host
    if args.port is not None:
        cfg.listen.port = int(args.port)
    if args.records is not None:
        cfg.records_file = args.records
    if args.whitelist is not None:
        cfg.whitelist_file = args.whitelist
    if args.denied_log is not None:
        cfg.denied_log = args.denied_log
    if args.log_level is not None:
        cfg.logging = {**cfg.logging, "level": args.log_level}
    return cfg


def build_client(cfg: DnsgateConfig) -> JsonResolverClient:
    """Build the external resolver client from the upstream section."""
    return JsonResolverClient(
        cfg.upstream.url,
        timeout_ms=cfg.upstream.timeout_ms,
        verify=cfg.upstream.verify,
        headers=cfg.upstream.headers,
    )


def build_engine(
    cfg: DnsgateConfig, store: RecordStore, client: Optional[JsonResolverClient] = None
) -> ResolutionEngine:
    """
    Brief: Wire the whitelist, denial log and external client around a store.

    Inputs:
      - cfg: validated configuration.
      - store: RecordStore that has already been loaded.
      - client: optional external client (built from cfg.upstream when None).

    Outputs:
      - ResolutionEngine
    """
    if client is None:
        client = build_client(cfg)
    return ResolutionEngine(
        store,
        Whitelist(cfg.whitelist_file),
        DenialLog(cfg.denied_log),
        client,
        answer_ttl=cfg.answer_ttl,
    )


def run(cfg: DnsgateConfig, shutdown_event: threading.Event) -> int:
    """
    Brief: Load records, bind the listener and serve until shutdown_event is set.

    Inputs:
      - cfg: validated configuration (logging already initialized).
      - shutdown_event: set by signal handlers or callers to stop serving.

    Outputs:
      - int: 0 after a requested shutdown, 1 when records fail to load, the
        listener cannot bind, or the server loop dies unexpectedly.
    """
    logger = logging.getLogger("dnsgate.main")

    store = RecordStore()
    try:
        count = store.load(cfg.records_file)
    except LoadError as e:
        logger.error("Failed to load DNS records: %s", e)
        return 1
    logger.info("Loaded %d local records from %s", count, cfg.records_file)

    client = build_client(cfg)
    engine = build_engine(cfg, store, client)

    try:
        server = DNSServer(cfg.listen.host, cfg.listen.port, engine)
    except OSError as e:
        logger.error("Failed to start server: %s", e)
        client.close()
        return 1

    udp_thread = threading.Thread(
        target=server.serve_forever, name="dnsgate-udp", daemon=True
    )
    udp_thread.start()
    host, port = server.address
    logger.info("DNS resolver server listening on %s:%d", host, port)

    exit_code = 0
    try:
        while not shutdown_event.wait(0.5):
            if not udp_thread.is_alive():
                logger.error("UDP server loop exited unexpectedly")
                exit_code = 1
                break
    finally:
        server.stop()
        udp_thread.join(timeout=5.0)
        client.close()
        logger.info("Shutdown complete")
    return exit_code


def _install_signal_handlers(shutdown_event: threading.Event) -> None:
    log = logging.getLogger("dnsgate.main")

    def _request_shutdown(signum, _frame):
        log.info("Received %s, initiating shutdown", signal.Signals(signum).name)
        shutdown_event.set()

    for signum in (signal.SIGTERM, signal.SIGINT):
        try:
            signal.signal(signum, _request_shutdown)
        except (ValueError, OSError):  # pragma: no cover - not in main thread / platform
            log.warning("Could not install %s handler", signal.Signals(signum).name)


def main(argv: List[str] | None = None) -> int:
    """
    Main entry point for the DNS relay.
    Parses arguments, loads configuration, loads local records and serves UDP.

    Args:
        argv: Command-line arguments.

    Returns:
        An exit code.

    Example use:
        CLI:
            dnsgate --config config.yaml
            PYTHONPATH=src python -m dnsgate.main --records dns_records.txt --port 5353
    """
    args = _build_parser().parse_args(argv)

    try:
        cfg = parse_config_file(args.config)
    except ConfigError as exc:
        print(str(exc))
        return 1
    apply_cli_overrides(cfg, args)

    # Initialize logging before any other operations
    init_logging(cfg.logging)
    logger = logging.getLogger("dnsgate.main")
    if args.config:
        logger.info("Loaded config from %s", args.config)

    shutdown_event = threading.Event()
    _install_signal_handlers(shutdown_event)
    return run(cfg, shutdown_event)


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
