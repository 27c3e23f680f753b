"""Request records built from typed fields — frozen dataclasses validated once."""

import re
from dataclasses import dataclass
from datetime import datetime
from urllib.parse import unquote, urlsplit

from ingress_stats.errors import FieldCoercionError, MalformedRequestTarget
from ingress_stats.fields import TypedFields

NO_UPSTREAM = "0.0.0.0"
GATEWAY_TIMEOUT = 504

TIME_LOCAL_FORMAT = "%d/%b/%Y:%H:%M:%S %z"
ERROR_TIME_FORMAT = "%Y/%m/%d %H:%M:%S"

_BASE_URL = "http://localhost"
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")
_CONTROL_RE = re.compile(r"[\x00-\x1f\x7f]")


@dataclass(frozen=True)
class Request:
    method: str
    path: str
    query: str


@dataclass(frozen=True)
class RequestRecord:
    upstream_addr: str
    time_local: datetime | None
    request_time: float | None
    upstream_status: int
    request: Request
    timed_out: bool = False


def parse_request_target(raw: str) -> Request:
    """Split 'GET /foo?x=1 HTTP/1.1' into method, decoded path and raw query."""
    parts = raw.split(" ")
    if len(parts) != 3:
        raise MalformedRequestTarget(f"incorrect format for {raw!r}")
    method, target, _protocol = parts

    if _CONTROL_RE.search(target):
        raise MalformedRequestTarget(f"invalid request target {target!r}")
    try:
        url = urlsplit(_BASE_URL + target)
    except ValueError as e:
        raise MalformedRequestTarget(f"invalid request target {target!r}: {e}") from e
    # the query is kept raw, only the path has to be a valid escaped string
    if _BAD_ESCAPE_RE.search(url.path):
        raise MalformedRequestTarget(f"invalid escape in path {url.path!r}")

    return Request(method=method, path=unquote(url.path), query=url.query)


def _upstream_addr(fields: TypedFields) -> str:
    return fields.optional_str("upstream_addr") or NO_UPSTREAM


def build_access_record(fields: TypedFields,
                        time_format: str = TIME_LOCAL_FORMAT) -> RequestRecord:
    """Build a record from an access-log match.

    Raises FieldCoercionError when a required field is missing or mistyped
    and MalformedRequestTarget when the request string is unusable.
    """
    request_time = fields.require_float("request_time")

    time_str = fields.require_str("time_local")
    try:
        time_local = datetime.strptime(time_str, time_format)
    except ValueError as e:
        raise FieldCoercionError("time_local", f"cannot parse time_local {time_str!r}: {e}") from e

    upstream_status = fields.require_int("upstream_status")
    request = parse_request_target(fields.require_str("request"))

    return RequestRecord(
        upstream_addr=_upstream_addr(fields),
        time_local=time_local,
        request_time=request_time,
        upstream_status=upstream_status,
        request=request,
    )


def _error_time(fields: TypedFields) -> datetime | None:
    date_str = fields.optional_str("time_date")
    hms_str = fields.optional_str("time_hms")
    if date_str is None or hms_str is None:
        return None
    try:
        return datetime.strptime(f"{date_str} {hms_str}", ERROR_TIME_FORMAT)
    except ValueError:
        return None


def build_error_record(fields: TypedFields) -> RequestRecord:
    """Build a timed-out record from an error-log match.

    The status is always GATEWAY_TIMEOUT and there is no latency, whatever
    status-like fields the line carries.
    """
    request = parse_request_target(fields.require_str("request"))
    return RequestRecord(
        upstream_addr=_upstream_addr(fields),
        time_local=_error_time(fields),
        request_time=None,
        upstream_status=GATEWAY_TIMEOUT,
        request=request,
        timed_out=True,
    )
