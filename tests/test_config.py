"""Tests for configuration models and TOML persistence."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from page_monitor.config import AppConfig, EngineConfig, MonitorConfiguration, TimeoutConfig


class TestMonitorConfiguration:
    def test_defaults(self) -> None:
        config = MonitorConfiguration()
        assert config.url == "https://example.com"
        assert config.selector == "body"
        assert config.server_url == "http://127.0.0.1:5000"
        assert config.wait_options.enabled is False

    def test_camel_case_aliases(self) -> None:
        config = MonitorConfiguration.model_validate(
            {
                "url": "https://example.com",
                "selector": ".price",
                "useServer": True,
                "useJavaScript": True,
                "serverURL": "http://localhost:8080",
                "apiKey": "secret",
                "fetchAllMatches": True,
                "waitOptions": {"enabled": True, "loadState": "load", "additionalWaitTime": 2},
            }
        )
        assert config.use_server and config.use_javascript and config.fetch_all_matches
        assert config.server_url == "http://localhost:8080"
        assert config.api_key == "secret"
        assert config.wait_options.load_state == "load"
        assert config.wait_options.additional_wait_time == 2.0


class TestEngineConfig:
    def test_timeout_table(self) -> None:
        timeouts = TimeoutConfig()
        assert (timeouts.direct_request_s, timeouts.direct_resource_s) == (30, 60)
        assert (timeouts.server_request_s, timeouts.server_resource_s) == (60, 90)
        assert timeouts.extraction_timeout_s == 45
        assert timeouts.worker_timeout_ms == 60000

    def test_rejects_non_positive_timeouts(self) -> None:
        with pytest.raises(ValidationError):
            TimeoutConfig(direct_request_s=0)

    def test_local_worker_command(self) -> None:
        command = EngineConfig.local_worker_command()
        assert command[1:] == ["-m", "page_monitor", "worker"]


class TestAppConfigToml:
    def test_round_trip(self, tmp_path: Path) -> None:
        original = AppConfig(
            monitor=MonitorConfiguration(
                url="https://example.com/prices",
                label='Price "now"',
                selector="span.price:text",
                use_server=True,
                fetch_all_matches=True,
            ),
            engine=EngineConfig(worker_command=["page-monitor", "worker"]),
        )
        path = tmp_path / "monitor.toml"
        path.write_text(original.to_toml(), encoding="utf-8")

        assert AppConfig.from_toml(path) == original

    def test_camel_case_file(self, tmp_path: Path) -> None:
        path = tmp_path / "monitor.toml"
        path.write_text(
            "[monitor]\n"
            'url = "https://example.com"\n'
            'selector = "h1"\n'
            "useServer = true\n"
            'serverURL = "http://10.0.0.2:5000"\n'
            "\n[monitor.waitOptions]\n"
            "enabled = true\n"
            'waitForSelector = "#app"\n',
            encoding="utf-8",
        )
        config = AppConfig.from_toml(path)
        assert config.monitor.server_url == "http://10.0.0.2:5000"
        assert config.monitor.wait_options.wait_for_selector == "#app"
        assert config.engine == EngineConfig()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            AppConfig.from_toml(tmp_path / "missing.toml")


class TestWhitespace:
    def test_monitor_strings_are_stripped(self) -> None:
        config = MonitorConfiguration.model_validate(
            {"url": " https://example.com\n", "serverURL": "\thttp://127.0.0.1:5000 ", "selector": " h1 "}
        )
        assert config.url == "https://example.com"
        assert config.server_url == "http://127.0.0.1:5000"
        assert config.selector == "h1"
