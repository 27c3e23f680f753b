import pytest

from ingress_stats.collector import MetricCollector
from ingress_stats.parser import LineParser

ACCESS_TEMPLATE = (
    '{remote_addr} - - [{time_local}] "{request}" {status} 612 "-" "curl/7.68.0" '
    '85 {request_time} [default-web-80] [] {upstream_addr} 612 {request_time} '
    '{upstream_status} 5f8d2c1a9b7e'
)

ERROR_TEMPLATE = (
    '2021/05/01 10:00:00 [error] 31#31: *12345 upstream timed out '
    '(110: Connection timed out) while reading response header from upstream, '
    'client: {client}, server: _, request: "{request}", '
    'upstream: "http://10.244.0.12:8080{path}", host: "example.com"'
)


def make_access_line(request="GET /foo/bar?x=1 HTTP/1.1", status="200",
                     request_time="0.500", upstream_status="200",
                     upstream_addr="10.244.0.12:8080",
                     time_local="2/Jan/2006:15:04:05 +0000",
                     remote_addr="10.0.0.5") -> str:
    return ACCESS_TEMPLATE.format(
        remote_addr=remote_addr,
        time_local=time_local,
        request=request,
        status=status,
        request_time=request_time,
        upstream_addr=upstream_addr,
        upstream_status=upstream_status,
    )


def make_error_line(request="GET /foo/bar HTTP/1.1", client="10.0.0.1") -> str:
    path = request.split(" ")[1] if request.count(" ") == 2 else "/"
    return ERROR_TEMPLATE.format(request=request, client=client, path=path)


@pytest.fixture
def access_line():
    return make_access_line


@pytest.fixture
def error_line():
    return make_error_line


@pytest.fixture
def parser():
    return LineParser()


@pytest.fixture
def collector():
    return MetricCollector()
