"""ingress-stats — summarize nginx-ingress access logs from stdin or files."""

from ingress_stats.cli import main

if __name__ == "__main__":
    main()
