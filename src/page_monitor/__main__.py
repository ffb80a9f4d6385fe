"""Allow ``python -m page_monitor``."""

from page_monitor.cli import app

app()
