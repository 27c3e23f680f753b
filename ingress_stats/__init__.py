"""ingress-stats — parse nginx-ingress logs and report latency, status and timeout metrics."""

__version__ = "0.1.0"
