"""
CLI entrypoint that runs the probe sequence or serves the control API.

Without a real SDK binding the harness drives the in-memory simulator, so the
full initialize → intent → widgets → CORS flow can be exercised from a
terminal. Widget outcomes arrive asynchronously; the runner waits a short
grace period for them before printing the activity log.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import logging.handlers
import signal
from collections import OrderedDict
from collections.abc import Sequence
from pathlib import Path

from .api.control_api import ControlApi
from .core.config import ConfigError, ConfigService, ConfigSnapshot
from .core.contracts import LogEntry, ResultEnvelope
from .core.orchestrator import ProbeOrchestrator
from .harness import build_orchestrator
from .probes import PROBE_REGISTRY, resolve_probe_name

LOGGER = logging.getLogger(__name__)
LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
DEFAULT_SEQUENCE: tuple[str, ...] = tuple(PROBE_REGISTRY)

_ICONS = {"info": "ℹ️", "success": "✅", "error": "❌"}


def _ensure_rotating_file_handler(
    log_file: Path,
    *,
    max_mb: int = 10,
    backup_count: int = 3,
) -> None:
    """Attach a rotating file handler pointed at ``log_file`` if missing."""

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create log directory %s: %s", log_file.parent, exc)
        return

    root_logger = logging.getLogger()
    for handler in root_logger.handlers:
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            existing = getattr(handler, "baseFilename", None)
            if existing and Path(existing) == log_file.resolve():
                return

    handler = logging.handlers.RotatingFileHandler(
        log_file,
        maxBytes=max_mb * 1024 * 1024,
        backupCount=backup_count,
        encoding="utf-8",
    )
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(handler)


def configure_logging(level: str, snapshot: ConfigSnapshot | None = None) -> None:
    numeric_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric_level,
        format=LOG_FORMAT,
    )
    if snapshot is not None and snapshot.logging.file is not None:
        _ensure_rotating_file_handler(
            snapshot.logging.file,
            max_mb=snapshot.logging.max_mb,
            backup_count=snapshot.logging.backup_count,
        )


def build_probe_sequence(requested: Sequence[str] | None) -> list[str]:
    """
    Resolve CLI probe labels into registered names, keeping order and
    dropping duplicates. Defaults to every probe in registry order.
    """

    labels = list(requested or DEFAULT_SEQUENCE)
    unique: OrderedDict[str, None] = OrderedDict()
    for label in labels:
        name = resolve_probe_name(label)
        if name not in PROBE_REGISTRY:
            raise ValueError(f"Unknown probe '{label}'. Available: {sorted(PROBE_REGISTRY)}")
        unique.setdefault(name, None)
    return list(unique.keys())


def format_entry(entry: LogEntry) -> str:
    return f"[{entry.timestamp}] {_ICONS.get(entry.severity, '')} {entry.message}"


def format_result(slot: str, envelope: ResultEnvelope | None) -> str:
    if envelope is None:
        return f"{slot:<22} pending"
    status = "PASS" if envelope.success else "FAIL"
    return f"{slot:<22} {status}  {envelope.message}"


async def run_probes(
    orchestrator: ProbeOrchestrator,
    probe_names: Sequence[str],
    *,
    outcome_wait: float = 1.0,
) -> list[ResultEnvelope]:
    """Run probes one after another, then give widget outcomes time to land."""

    envelopes: list[ResultEnvelope] = []
    for name in probe_names:
        envelopes.append(await orchestrator.run(name))
    if outcome_wait > 0 and orchestrator.bridge.sessions():
        LOGGER.info("Waiting up to %.1fs for widget outcomes.", outcome_wait)
        loop = asyncio.get_running_loop()
        deadline = loop.time() + outcome_wait
        while orchestrator.bridge.sessions() and loop.time() < deadline:
            await asyncio.sleep(0.05)
    await orchestrator.logs.drain()
    return envelopes


async def serve(orchestrator: ProbeOrchestrator, snapshot: ConfigSnapshot) -> None:
    """Serve the control API until interrupted."""

    api = ControlApi(
        orchestrator,
        host=snapshot.control_api.host,
        port=snapshot.control_api.port,
        serve_api=True,
    )
    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)
    await api.start()
    LOGGER.info("Probe control API running. Press Ctrl+C to stop.")
    try:
        await stop_event.wait()
    finally:
        await api.stop()


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()

    def _request_shutdown(sig_name: str) -> None:
        if not stop_event.is_set():
            LOGGER.info("Received %s, beginning graceful shutdown.", sig_name)
            stop_event.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _request_shutdown, sig.name)
        except NotImplementedError:  # Windows Proactor loop
            signal.signal(  # type: ignore[arg-type]
                sig,
                lambda signum, _frame, sig_name=sig.name: loop.call_soon_threadsafe(
                    _request_shutdown, sig_name or str(signum)
                ),
            )


def parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="AxraPay SDK integration probe harness.")
    parser.add_argument(
        "--config-dir",
        type=Path,
        default=None,
        help="Directory that contains config.yaml/secrets.yaml (default: repo config/).",
    )
    parser.add_argument(
        "--probe",
        dest="probes",
        action="append",
        default=[],
        metavar="PROBE",
        help="Probe to run, repeatable (alias like 'card' or full name). Default: all.",
    )
    parser.add_argument("--publishable-key", default=None, help="Override the publishable key.")
    parser.add_argument("--business-id", default=None, help="Override the business id.")
    parser.add_argument("--sdk-token", default=None, help="Override the SDK token.")
    parser.add_argument(
        "--outcome",
        choices=["success", "error", "cancel", "none"],
        default=None,
        help="Simulated end-user outcome for mounted widgets.",
    )
    parser.add_argument(
        "--wait",
        type=float,
        default=1.0,
        help="Seconds to wait for widget outcomes after the last probe (default: 1.0).",
    )
    parser.add_argument(
        "--serve",
        action="store_true",
        help="Serve the control API instead of running the probe sequence.",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Python logging level (default: from config, else INFO).",
    )
    return parser.parse_args(argv)


def _apply_overrides(config_service: ConfigService, args: argparse.Namespace) -> ConfigSnapshot:
    changes: dict[str, dict[str, object]] = {}
    credentials = {
        "publishable_key": args.publishable_key,
        "business_id": args.business_id,
        "sdk_token": args.sdk_token,
    }
    credentials = {key: value for key, value in credentials.items() if value is not None}
    if credentials:
        changes["credentials"] = credentials
    if args.outcome:
        changes["interaction"] = {"outcome": args.outcome}
    if not changes:
        return config_service.snapshot
    return config_service.apply_changes(changes)


async def _run(args: argparse.Namespace, snapshot: ConfigSnapshot) -> int:
    orchestrator = build_orchestrator(snapshot)
    if args.serve:
        await serve(orchestrator, snapshot)
        return 0
    probe_names = build_probe_sequence(args.probes)
    envelopes = await run_probes(orchestrator, probe_names, outcome_wait=args.wait)
    for entry in orchestrator.logs.entries:
        print(format_entry(entry))
    print()
    for slot, envelope in orchestrator.results.snapshot().items():
        print(format_result(slot, envelope))
    return 0 if all(envelope.success for envelope in envelopes) else 1


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)
    try:
        config_service = ConfigService(config_dir=args.config_dir)
        snapshot = _apply_overrides(config_service, args)
    except ConfigError as exc:
        configure_logging(args.log_level or "INFO")
        LOGGER.error("Configuration failed: %s", exc)
        return 2
    configure_logging(args.log_level or snapshot.logging.level, snapshot)
    try:
        return asyncio.run(_run(args, snapshot))
    except KeyboardInterrupt:
        LOGGER.info("Interrupted by user.")
        return 0
    except ValueError as exc:
        LOGGER.error("%s", exc)
        return 2
    except Exception:  # pragma: no cover - surfaced to operator
        LOGGER.exception("Probe harness crashed.")
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())


__all__ = ["build_probe_sequence", "main", "run_probes"]
