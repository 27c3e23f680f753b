"""Command line entry point — read log lines, aggregate, report."""

import io
import logging
import os
import signal
import sys
from argparse import ArgumentParser
from typing import Iterable, Iterator

import yaml

from ingress_stats.collector import GroupKind, MetricCollector
from ingress_stats.config import LOG_LEVELS, OUTPUT_FORMATS, load_config, load_yaml_config
from ingress_stats.errors import ExportIOFailure
from ingress_stats.parser import LineParser
from ingress_stats.pipeline import CancellationToken, Ingestor
from ingress_stats.reporter import export_csv, get_formatter

logger = logging.getLogger(__name__)


def build_parser() -> ArgumentParser:
    """Build the CLI argument parser."""
    parser = ArgumentParser(
        prog="ingress-stats",
        description="Summarize nginx-ingress access logs: status codes, timeouts, latency.",
    )
    parser.add_argument(
        "files",
        nargs="*",
        help="Log file(s) to read in order (default: standard input)",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to YAML config file (default: $CONFIG_PATH)",
    )
    parser.add_argument(
        "--group-by",
        choices=[g.value for g in GroupKind],
        help="Aggregate by request path or upstream address (default: path)",
    )
    parser.add_argument(
        "--output",
        choices=OUTPUT_FORMATS,
        help="Summary format (default: text)",
    )
    parser.add_argument(
        "--export-csv",
        action="store_const",
        const=True,
        help="Write results-all.csv and results-greater-2s.csv after the summary",
    )
    parser.add_argument(
        "--export-dir",
        help="Directory for CSV export (default: current directory)",
    )
    parser.add_argument(
        "--report-every",
        type=int,
        help="Print a snapshot summary every N lines (default: off)",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        help="Logging level for stderr diagnostics (default: INFO)",
    )
    return parser


def read_lines(paths: list[str]) -> Iterator[str]:
    """Yield lines from the given files, or from stdin when there are none."""
    if not paths:
        yield from io.TextIOWrapper(sys.stdin.buffer, encoding="utf-8", errors="replace")
        return
    for path in paths:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            yield from f


def _every(lines: Iterable[str], n: int, token: CancellationToken) -> Iterator[str]:
    for i, line in enumerate(lines, start=1):
        if i % n == 0:
            token.request_snapshot()
        yield line


def _install_signal_handlers(token: CancellationToken) -> dict:
    """SIGINT/SIGTERM cancel ingestion, SIGUSR1 asks for a snapshot.

    Returns the previous handlers so they can be restored.
    """
    def _shutdown(signum, frame):
        logger.info("Shutdown signal received, reporting...")
        token.interrupt()

    def _snapshot(signum, frame):
        token.request_snapshot()

    handlers = {signal.SIGINT: _shutdown, signal.SIGTERM: _shutdown}
    if hasattr(signal, "SIGUSR1"):
        handlers[signal.SIGUSR1] = _snapshot
    return {signum: signal.signal(signum, handler) for signum, handler in handlers.items()}


def run(args) -> int:
    """Ingest, report and optionally export. Returns the process exit code."""
    try:
        yaml_data = load_yaml_config(args.config or os.environ.get("CONFIG_PATH"))
        config = load_config(args, yaml_data)
        parser = LineParser(config.access_format, config.error_format, config.time_format)
    except (ValueError, yaml.YAMLError) as e:
        print(f"Error: invalid configuration: {e}", file=sys.stderr)
        return 2
    logging.getLogger().setLevel(config.log_level)
    logger.info("Config: group_by=%s, output=%s, export_csv=%s",
                config.group_by, config.output, config.export_csv)

    collector = MetricCollector(
        group=config.group_kind,
        response_threshold=config.response_threshold,
        high_latency_threshold=config.high_latency_threshold,
    )
    ingestor = Ingestor(parser, collector)
    formatter = get_formatter(config.output)

    def report():
        print(formatter(collector.summarize(), ingestor.stats), flush=True)

    missing = [p for p in args.files if not os.path.isfile(p)]
    if missing:
        print(f"Error: file not found: {', '.join(missing)}", file=sys.stderr)
        return 2

    token = CancellationToken()
    previous = _install_signal_handlers(token)

    lines = read_lines(args.files)
    if config.report_every:
        lines = _every(lines, config.report_every, token)

    try:
        stats = ingestor.run(lines, token, on_snapshot=report)
    finally:
        for signum, handler in previous.items():
            if handler is not None:
                signal.signal(signum, handler)
    logger.info("Stats: %d lines read, %d parsed, %d timed out, %d skipped",
                stats.lines_read, stats.parsed, stats.timed_out, stats.skipped)
    report()

    if config.export_csv:
        try:
            export_csv(collector, config.export_dir)
        except ExportIOFailure as e:
            logger.error("%s", e)
            return 1
    return 0


def main(argv=None):
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [INGRESS] %(levelname)s %(message)s",
        stream=sys.stderr,
    )
    args = build_parser().parse_args(argv)
    try:
        sys.exit(run(args))
    except BrokenPipeError:
        sys.exit(0)
