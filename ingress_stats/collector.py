"""Metric collector — per-group latency samples, status histograms, timeouts."""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Iterator, Mapping

from ingress_stats.records import RequestRecord

REPORTING_THRESHOLD = 100
HIGH_LATENCY_THRESHOLD = 2.0  # seconds


class GroupKind(Enum):
    PATH = "path"
    UPSTREAM_ADDR = "upstream_addr"


@dataclass(frozen=True)
class LatencySample:
    latency: float
    timestamp: datetime | None
    upstream_addr: str


@dataclass
class TimeoutCount:
    count: int = 0
    total: int = 0


@dataclass(frozen=True)
class TimeoutRatio:
    count: int
    total: int
    percent: float


@dataclass(frozen=True)
class LatencyStat:
    mean: float
    count: int


@dataclass
class Summary:
    total_tracked: int = 0
    response_anomalies: dict[str, dict[int, int]] = field(default_factory=dict)
    timeout_ratios: dict[str, TimeoutRatio] = field(default_factory=dict)
    latency: dict[str, LatencyStat] = field(default_factory=dict)
    high_latency_count: int = 0
    high_latency_percent: float = 0.0
    high_latency_threshold: float = HIGH_LATENCY_THRESHOLD


class MetricCollector:
    """Aggregates RequestRecords by path or upstream address.

    Owned by whoever drives ingestion; nothing here is module-global, so
    several collectors can coexist.
    """

    def __init__(self, group: GroupKind = GroupKind.PATH,
                 response_threshold: int = REPORTING_THRESHOLD,
                 high_latency_threshold: float = HIGH_LATENCY_THRESHOLD):
        self.group = group
        self.response_threshold = response_threshold
        self.high_latency_threshold = high_latency_threshold
        self._latency: dict[str, list[LatencySample]] = {}
        self._responses: dict[str, Counter] = {}
        self._timeouts: dict[str, TimeoutCount] = {}

    @property
    def latency_data(self) -> Mapping[str, list[LatencySample]]:
        return MappingProxyType(self._latency)

    @property
    def response_data(self) -> Mapping[str, Counter]:
        return MappingProxyType(self._responses)

    @property
    def timeout_data(self) -> Mapping[str, TimeoutCount]:
        return MappingProxyType(self._timeouts)

    def group_key(self, record: RequestRecord) -> str | None:
        if self.group is GroupKind.UPSTREAM_ADDR:
            return record.upstream_addr
        if record.request is None:
            return None
        return record.request.path

    def add(self, record: RequestRecord) -> None:
        """Register one record. Records without a group key are dropped."""
        key = self.group_key(record)
        if not key:
            return

        # latency only exists for requests that got a response
        if not record.timed_out:
            self._latency.setdefault(key, []).append(LatencySample(
                latency=record.request_time,
                timestamp=record.time_local,
                upstream_addr=record.upstream_addr,
            ))

        self._responses.setdefault(key, Counter())[record.upstream_status] += 1

        timeouts = self._timeouts.setdefault(key, TimeoutCount())
        timeouts.total += 1
        if record.timed_out:
            timeouts.count += 1

    def samples(self) -> Iterator[tuple[str, LatencySample]]:
        """Yield (group, sample) for every latency sample, grouped in insertion order."""
        for key, bucket in self._latency.items():
            for sample in bucket:
                yield key, sample

    def summarize(self) -> Summary:
        """Compute report data. Read-only; safe to call repeatedly."""
        summary = Summary(high_latency_threshold=self.high_latency_threshold)

        for key in sorted(self._responses):
            histogram = self._responses[key]
            total = sum(histogram.values())
            has_4xx_or_5xx = any(code >= 400 for code in histogram)
            if has_4xx_or_5xx and total > self.response_threshold:
                summary.response_anomalies[key] = dict(sorted(histogram.items()))

        for key in sorted(self._timeouts):
            t = self._timeouts[key]
            if t.count > 0 and t.total > self.response_threshold:
                summary.timeout_ratios[key] = TimeoutRatio(
                    count=t.count,
                    total=t.total,
                    percent=100.0 * t.count / t.total,
                )

        for key in sorted(self._latency):
            bucket = self._latency[key]
            latencies = [s.latency for s in bucket]
            summary.latency[key] = LatencyStat(
                mean=sum(latencies) / len(latencies),
                count=len(latencies),
            )
            summary.total_tracked += len(latencies)
            summary.high_latency_count += sum(
                1 for v in latencies if v > self.high_latency_threshold
            )

        if summary.total_tracked:
            summary.high_latency_percent = (
                100.0 * summary.high_latency_count / summary.total_tracked
            )
        return summary
