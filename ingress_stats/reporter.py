"""Summary formatters (text, JSON) and CSV export of latency samples."""

import csv
import json
import logging
import os
import tempfile

from ingress_stats.collector import MetricCollector, Summary
from ingress_stats.errors import ExportIOFailure

logger = logging.getLogger(__name__)

ALL_SAMPLES_FILE = "results-all.csv"
HIGH_LATENCY_FILE = "results-greater-2s.csv"

_RULE = "-" * 33


def _section(title: str) -> list[str]:
    return ["", _RULE, title, _RULE]


def format_summary_text(summary: Summary, ingest_stats=None) -> str:
    """Human-readable report: overview, status codes, timeouts, latency."""
    lines = _section("OVERVIEW")
    if ingest_stats is not None:
        lines.append(f"Lines read: {ingest_stats.lines_read}")
        lines.append(f"Lines parsed: {ingest_stats.parsed}")
        lines.append(f"Lines skipped: {ingest_stats.skipped}")
        lines.append(f"Timed out requests: {ingest_stats.timed_out}")
    lines.append(f"Total number of requests tracked: {summary.total_tracked}")

    lines.extend(_section("RESPONSE STATUS CODE METRICS"))
    for group, histogram in summary.response_anomalies.items():
        lines.append(f"{group}:")
        for code, num in histogram.items():
            lines.append(f"  {code} -- {num}")
        lines.append(f"Total: {sum(histogram.values())}")
        lines.append("")

    lines.extend(_section("TIME OUT PERCENTAGES"))
    for group, ratio in summary.timeout_ratios.items():
        lines.append(f"{group}: {ratio.count} / {ratio.total} ({ratio.percent:.2f}%)")

    lines.extend(_section("LATENCY"))
    for group, stat in summary.latency.items():
        lines.append(f"{group}: {stat.mean:f} (tot {stat.count})")

    lines.extend(_section("HIGH LATENCY"))
    lines.append(
        f"number of requests over {summary.high_latency_threshold:g} seconds: "
        f"{summary.high_latency_count} {summary.high_latency_percent:.4f}"
    )
    return "\n".join(lines)


def format_summary_json(summary: Summary, ingest_stats=None) -> str:
    """JSON report with the same sections as the text one."""
    data = {
        "overview": {"total_tracked": summary.total_tracked},
        "response_codes": {
            group: {str(code): num for code, num in histogram.items()}
            for group, histogram in summary.response_anomalies.items()
        },
        "timeouts": {
            group: {"count": r.count, "total": r.total, "percent": round(r.percent, 2)}
            for group, r in summary.timeout_ratios.items()
        },
        "latency": {
            group: {"mean": s.mean, "count": s.count}
            for group, s in summary.latency.items()
        },
        "high_latency": {
            "threshold_seconds": summary.high_latency_threshold,
            "count": summary.high_latency_count,
            "percent": round(summary.high_latency_percent, 4),
        },
    }
    if ingest_stats is not None:
        data["overview"].update({
            "lines_read": ingest_stats.lines_read,
            "parsed": ingest_stats.parsed,
            "skipped": ingest_stats.skipped,
            "timed_out": ingest_stats.timed_out,
        })
    return json.dumps(data, indent=2)


def get_formatter(output_format: str = "text"):
    """Return the summary formatter for 'text' or 'json'."""
    if output_format == "json":
        return format_summary_json
    return format_summary_text


def _write_temp(directory: str, rows: list[list[str]]) -> str:
    fd, tmp = tempfile.mkstemp(dir=directory, suffix=".tmp")
    try:
        with os.fdopen(fd, "w", newline="", encoding="utf-8") as f:
            csv.writer(f).writerows(rows)
    except Exception:
        os.unlink(tmp)
        raise
    return tmp


def export_csv(collector: MetricCollector, output_dir: str = ".") -> tuple[str, str]:
    """Write every latency sample, and those above the high-latency threshold.

    Rows are ``group, timestamp, latency``. Returns the two file paths.
    Raises ExportIOFailure if either file cannot be written.
    """
    all_rows = []
    slow_rows = []
    for group, sample in collector.samples():
        timestamp = str(sample.timestamp) if sample.timestamp is not None else ""
        row = [group, timestamp, f"{sample.latency:f}"]
        all_rows.append(row)
        if sample.latency > collector.high_latency_threshold:
            slow_rows.append(row)

    all_path = os.path.join(output_dir, ALL_SAMPLES_FILE)
    slow_path = os.path.join(output_dir, HIGH_LATENCY_FILE)
    staged = []
    try:
        os.makedirs(output_dir, exist_ok=True)
        # both files are staged before either replaces an earlier export
        staged.append((_write_temp(output_dir, all_rows), all_path))
        staged.append((_write_temp(output_dir, slow_rows), slow_path))
        for tmp, path in staged:
            os.replace(tmp, path)
    except (OSError, csv.Error) as e:
        for tmp, _path in staged:
            if os.path.exists(tmp):
                os.unlink(tmp)
        raise ExportIOFailure(f"cannot write CSV export to {output_dir}: {e}") from e

    logger.info("Exported %d samples (%d slow) to %s", len(all_rows), len(slow_rows), output_dir)
    return all_path, slow_path
