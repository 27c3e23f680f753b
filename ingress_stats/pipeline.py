"""Ingestion loop — one line at a time from parser to collector.

Signal handlers never touch the collector. They flip flags on a
CancellationToken and the loop acts on them between lines, so a record is
either fully registered or not at all.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Callable, Iterable

from ingress_stats.collector import MetricCollector
from ingress_stats.errors import IngestCancelled, ParseError
from ingress_stats.parser import LineParser

logger = logging.getLogger(__name__)


class CancellationToken:
    """Thread-safe stop and snapshot requests for the ingestion loop."""

    def __init__(self):
        self._cancelled = threading.Event()
        self._snapshot = threading.Event()
        self._lock = threading.Lock()
        self.reading = False

    def cancel(self) -> None:
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def request_snapshot(self) -> None:
        self._snapshot.set()

    def consume_snapshot(self) -> bool:
        """True exactly once per snapshot request."""
        with self._lock:
            if self._snapshot.is_set():
                self._snapshot.clear()
                return True
            return False

    def interrupt(self) -> None:
        """Cancel from a signal handler; breaks a blocking read if one is in progress."""
        self.cancel()
        if self.reading:
            raise IngestCancelled()


@dataclass
class IngestStats:
    lines_read: int = 0
    parsed: int = 0
    timed_out: int = 0
    skipped: int = 0


class Ingestor:
    """Feeds lines through a LineParser into a MetricCollector."""

    def __init__(self, parser: LineParser, collector: MetricCollector):
        self.parser = parser
        self.collector = collector
        self.stats = IngestStats()

    def process_line(self, line: str) -> bool:
        """Parse and register one line. Returns False if it was skipped."""
        if not line.strip():
            return False
        self.stats.lines_read += 1
        try:
            record = self.parser.parse(line)
        except ParseError as e:
            self.stats.skipped += 1
            logger.debug("Skipping line %d: %s", self.stats.lines_read, e)
            return False

        self.collector.add(record)
        self.stats.parsed += 1
        if record.timed_out:
            self.stats.timed_out += 1
        return True

    def run(self, lines: Iterable[str], token: CancellationToken | None = None,
            on_snapshot: Callable[[], None] | None = None) -> IngestStats:
        """Consume lines until they run out or the token is cancelled."""
        token = token or CancellationToken()
        it = iter(lines)
        try:
            while not token.cancelled:
                token.reading = True
                try:
                    line = next(it)
                except StopIteration:
                    break
                finally:
                    token.reading = False

                self.process_line(line)

                if on_snapshot is not None and token.consume_snapshot():
                    on_snapshot()
        except IngestCancelled:
            logger.info("Ingestion interrupted while waiting for input")

        if token.cancelled:
            logger.info("Ingestion cancelled after %d lines", self.stats.lines_read)
        return self.stats
