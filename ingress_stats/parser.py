"""nginx-ingress line parser — access template first, error template as fallback.

Parse order:
  1. Access log template -> record with the logged upstream status
  2. Error log template  -> timed-out record with status 504
  3. Neither             -> ParseError (the access error when only the
                            access template matched)
"""

from ingress_stats.errors import ParseError, TemplateMismatch
from ingress_stats.fields import coerce_fields
from ingress_stats.records import (
    TIME_LOCAL_FORMAT,
    RequestRecord,
    build_access_record,
    build_error_record,
)
from ingress_stats.template import Template, compile_template

# ingress-nginx default log-format-upstream and error log line layouts
NGINX_INGRESS_ACCESS_FORMAT = (
    '$remote_addr - $remote_user [$time_local] "$request" $status $body_bytes_sent '
    '"$http_referer" "$http_user_agent" $request_length $request_time '
    '[$proxy_upstream_name] [$proxy_alternative_upstream_name] $upstream_addr '
    '$upstream_response_length $upstream_response_time $upstream_status $req_id'
)

NGINX_INGRESS_ERROR_FORMAT = (
    '$time_date $time_hms [$status] $code: $id $message, client: $upstream_addr, '
    'server: $proxy_upstream_name, request: "$request", upstream: "$upstream_full", '
    'host: "$host"'
)


class LineParser:
    """Turns raw log lines into RequestRecords. Holds only compiled templates."""

    def __init__(self,
                 access_format: str = NGINX_INGRESS_ACCESS_FORMAT,
                 error_format: str = NGINX_INGRESS_ERROR_FORMAT,
                 time_format: str = TIME_LOCAL_FORMAT):
        self.access_template: Template = compile_template(access_format)
        self.error_template: Template = compile_template(error_format)
        self.time_format = time_format

    def parse(self, line: str) -> RequestRecord:
        """Parse one line. Raises a ParseError subclass if neither template fits."""
        line = line.rstrip("\r\n")
        try:
            return self._parse_access(line)
        except ParseError as access_err:
            try:
                return self._parse_error(line)
            except TemplateMismatch:
                # the access template matched, so its error says more
                if isinstance(access_err, TemplateMismatch):
                    raise
                raise access_err from None

    def _parse_access(self, line: str) -> RequestRecord:
        fields = coerce_fields(self.access_template.match(line))
        return build_access_record(fields, self.time_format)

    def _parse_error(self, line: str) -> RequestRecord:
        fields = coerce_fields(self.error_template.match(line))
        return build_error_record(fields)
