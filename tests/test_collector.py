"""Tests for ingress_stats/collector.py"""

from datetime import datetime, timezone

import pytest

from ingress_stats.collector import GroupKind, MetricCollector, TimeoutCount
from ingress_stats.records import GATEWAY_TIMEOUT, Request, RequestRecord

_TS = datetime(2006, 1, 2, 15, 4, 5, tzinfo=timezone.utc)


def _record(path="/foo", status=200, latency=0.5, timed_out=False,
            upstream="10.244.0.12:8080") -> RequestRecord:
    return RequestRecord(
        upstream_addr=upstream,
        time_local=None if timed_out else _TS,
        request_time=None if timed_out else latency,
        upstream_status=GATEWAY_TIMEOUT if timed_out else status,
        request=Request(method="GET", path=path, query=""),
        timed_out=timed_out,
    )


class TestAdd:
    def test_additivity(self, collector):
        for _ in range(7):
            collector.add(_record())
        assert sum(collector.response_data["/foo"].values()) == 7
        assert collector.timeout_data["/foo"].total == 7
        assert len(collector.latency_data["/foo"]) == 7

    def test_timed_out_skips_latency(self, collector):
        collector.add(_record(timed_out=True))
        assert "/foo" not in collector.latency_data
        assert collector.response_data["/foo"][GATEWAY_TIMEOUT] == 1
        assert collector.timeout_data["/foo"] == TimeoutCount(count=1, total=1)

    def test_histogram(self, collector):
        for status in (200, 200, 404, 500):
            collector.add(_record(status=status))
        assert dict(collector.response_data["/foo"]) == {200: 2, 404: 1, 500: 1}

    def test_group_by_upstream(self):
        c = MetricCollector(group=GroupKind.UPSTREAM_ADDR)
        c.add(_record(path="/a", upstream="10.0.0.1:80"))
        c.add(_record(path="/b", upstream="10.0.0.1:80"))
        assert list(c.timeout_data) == ["10.0.0.1:80"]
        assert c.timeout_data["10.0.0.1:80"].total == 2

    def test_empty_group_key_dropped(self):
        c = MetricCollector(group=GroupKind.UPSTREAM_ADDR)
        c.add(_record(upstream=""))
        assert dict(c.response_data) == {}
        assert dict(c.timeout_data) == {}

    def test_missing_request_dropped(self, collector):
        rec = RequestRecord(upstream_addr="x", time_local=None, request_time=0.1,
                            upstream_status=200, request=None)
        collector.add(rec)
        assert dict(collector.response_data) == {}

    def test_views_are_read_only(self, collector):
        collector.add(_record())
        with pytest.raises(TypeError):
            collector.timeout_data["/bar"] = TimeoutCount()

    def test_samples(self, collector):
        collector.add(_record(path="/a", latency=0.1))
        collector.add(_record(path="/b", latency=0.2))
        collector.add(_record(path="/a", latency=0.3))
        got = [(group, s.latency) for group, s in collector.samples()]
        assert got == [("/a", 0.1), ("/a", 0.3), ("/b", 0.2)]


class TestSummarize:
    def test_empty(self, collector):
        s = collector.summarize()
        assert s.total_tracked == 0
        assert s.response_anomalies == {}
        assert s.timeout_ratios == {}
        assert s.latency == {}
        assert s.high_latency_count == 0
        assert s.high_latency_percent == 0.0

    def test_idempotent(self, collector):
        for i in range(150):
            collector.add(_record(status=500 if i % 10 == 0 else 200, latency=i / 50))
        collector.add(_record(timed_out=True))
        assert collector.summarize() == collector.summarize()

    def test_low_traffic_groups_filtered(self, collector):
        for _ in range(50):
            collector.add(_record(status=503))
        for _ in range(50):
            collector.add(_record(timed_out=True))
        s = collector.summarize()
        # exactly 100 requests is not above the threshold
        assert s.response_anomalies == {}
        assert s.timeout_ratios == {}

    def test_anomaly_reported_above_threshold(self, collector):
        for _ in range(100):
            collector.add(_record(status=200))
        collector.add(_record(status=404))
        s = collector.summarize()
        assert s.response_anomalies == {"/foo": {200: 100, 404: 1}}

    def test_healthy_group_not_an_anomaly(self, collector):
        for _ in range(200):
            collector.add(_record(status=200))
        assert collector.summarize().response_anomalies == {}

    def test_timeout_ratio(self, collector):
        for _ in range(99):
            collector.add(_record())
        for _ in range(2):
            collector.add(_record(timed_out=True))
        ratio = collector.summarize().timeout_ratios["/foo"]
        assert (ratio.count, ratio.total) == (2, 101)
        assert ratio.percent == pytest.approx(100 * 2 / 101)

    def test_no_timeouts_not_reported(self, collector):
        for _ in range(150):
            collector.add(_record())
        assert collector.summarize().timeout_ratios == {}

    def test_latency_mean_per_group(self, collector):
        collector.add(_record(path="/a", latency=1.0))
        collector.add(_record(path="/a", latency=2.0))
        collector.add(_record(path="/b", latency=0.5))
        s = collector.summarize()
        assert s.latency["/a"].mean == pytest.approx(1.5)
        assert s.latency["/a"].count == 2
        assert s.latency["/b"].count == 1
        assert s.total_tracked == 3

    def test_high_latency(self, collector):
        for latency in (0.1, 2.0, 2.5, 10.0):
            collector.add(_record(latency=latency))
        s = collector.summarize()
        # strictly greater than the threshold
        assert s.high_latency_count == 2
        assert s.high_latency_percent == pytest.approx(50.0)

    def test_custom_thresholds(self):
        c = MetricCollector(response_threshold=2, high_latency_threshold=0.2)
        for status in (200, 200, 500):
            c.add(_record(status=status, latency=0.3))
        s = c.summarize()
        assert "/foo" in s.response_anomalies
        assert s.high_latency_count == 3
        assert s.high_latency_threshold == 0.2


class TestEndToEnd:
    def test_two_access_one_error_same_path(self, parser, collector, access_line, error_line):
        lines = [
            access_line(request="GET /foo/bar HTTP/1.1", request_time="0.5"),
            access_line(request="GET /foo/bar HTTP/1.1", request_time="0.5"),
            error_line(request="GET /foo/bar HTTP/1.1"),
        ]
        for line in lines:
            collector.add(parser.parse(line))

        assert len(collector.latency_data["/foo/bar"]) == 2
        assert collector.response_data["/foo/bar"][200] == 2
        assert collector.timeout_data["/foo/bar"] == TimeoutCount(count=1, total=3)
