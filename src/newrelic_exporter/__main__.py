"""Allow running the exporter with ``python -m newrelic_exporter``."""

from newrelic_exporter.cli import main

if __name__ == "__main__":
    main()
