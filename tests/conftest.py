"""Shared pytest fixtures for page-monitor tests."""

from __future__ import annotations

import pytest

from page_monitor.config import EngineConfig, MonitorConfiguration, WaitOptions

EXAMPLE_HTML = """
<!DOCTYPE html>
<html>
<head><title>Example Domain</title></head>
<body>
  <div>
    <h1>Example Domain</h1>
    <p>This domain is for use in illustrative examples in documents.</p>
    <p><a href="https://www.iana.org/domains/example">More information...</a></p>
  </div>
</body>
</html>
"""


@pytest.fixture
def example_html() -> str:
    return EXAMPLE_HTML


@pytest.fixture
def engine() -> EngineConfig:
    return EngineConfig()


@pytest.fixture
def server_config() -> MonitorConfiguration:
    """A valid server-mode configuration rendering JavaScript."""
    return MonitorConfiguration(
        url="https://example.com",
        selector="h1",
        use_server=True,
        use_javascript=True,
        server_url="http://127.0.0.1:5000",
        wait_options=WaitOptions(enabled=True, load_state="networkidle"),
    )
