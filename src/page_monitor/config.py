"""Configuration management with Pydantic models."""

import sys
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class LoadState(str, Enum):
    """Page load milestones the extraction service can wait for."""

    DOM_CONTENT_LOADED = "domcontentloaded"
    LOAD = "load"
    NETWORK_IDLE = "networkidle"


class WaitOptions(BaseModel):
    """How long the extraction service waits for dynamic content."""

    model_config = ConfigDict(populate_by_name=True)

    enabled: bool = False
    load_state: str = Field(default="", alias="loadState")
    wait_for_selector: str = Field(default="", alias="waitForSelector")
    additional_wait_time: float = Field(default=0.0, alias="additionalWaitTime")


class MonitorConfiguration(BaseModel):
    """One monitored page fragment.

    The model is deliberately permissive; invariants between the flags are
    checked by :func:`page_monitor.validation.validate_config` so that the
    first violation can be reported to the user as a message.
    """

    # Surrounding whitespace never reaches validation or the fetchers
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    url: str = "https://example.com"
    label: str = "Website Content"
    selector: str = "body"
    use_javascript: bool = Field(default=False, alias="useJavaScript")
    use_server: bool = Field(default=False, alias="useServer")
    server_url: str = Field(default="http://127.0.0.1:5000", alias="serverURL")
    api_key: str = Field(default="", alias="apiKey")
    fetch_all_matches: bool = Field(default=False, alias="fetchAllMatches")
    wait_options: WaitOptions = Field(default_factory=WaitOptions, alias="waitOptions")


class TimeoutConfig(BaseModel):
    """Fixed network and process timeouts."""

    direct_request_s: float = Field(default=30.0, gt=0, le=300)
    direct_resource_s: float = Field(default=60.0, gt=0, le=600)
    server_request_s: float = Field(default=60.0, gt=0, le=300)
    server_resource_s: float = Field(default=90.0, gt=0, le=600)
    extraction_timeout_s: int = Field(default=45, ge=1, le=300)  # Sent to the service
    worker_timeout_ms: int = Field(default=60000, ge=100, le=600000)


class EngineConfig(BaseModel):
    """Settings of the extraction engine itself, shared by every monitor."""

    user_agent: str = "PageMonitor/0.1 (Content Monitor)"
    # Empty: delegate to the network service. Otherwise spawn this command.
    worker_command: list[str] = Field(default_factory=list)
    max_wait_time_s: float = Field(default=15.0, ge=0, le=60)
    timeouts: TimeoutConfig = Field(default_factory=TimeoutConfig)

    @staticmethod
    def local_worker_command() -> list[str]:
        """Command line of the bundled extraction worker."""
        return [sys.executable, "-m", "page_monitor", "worker"]


class AppConfig(BaseModel):
    """Main application configuration."""

    monitor: MonitorConfiguration = Field(default_factory=MonitorConfiguration)
    engine: EngineConfig = Field(default_factory=EngineConfig)

    @classmethod
    def from_toml(cls, path: Path) -> "AppConfig":
        """Load config from a TOML file."""
        try:
            import tomllib  # type: ignore[import-not-found]
        except ModuleNotFoundError:
            import tomli as tomllib  # type: ignore[import-not-found]
        with open(path, "rb") as f:
            data = tomllib.load(f)
        return cls.model_validate(data)

    def to_toml(self) -> str:
        """Serialize config to TOML format."""
        data = self.model_dump(mode="json")
        return _dict_to_toml(data)


def _toml_value(v: object) -> str:
    """Format a Python value as a TOML literal."""
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, int):
        return str(v)
    if isinstance(v, float):
        return f"{v}"
    if isinstance(v, str):
        escaped = v.replace("\\", "\\\\").replace('"', '\\"')
        return f'"{escaped}"'
    if isinstance(v, list):
        items = ", ".join(_toml_value(i) for i in v)
        return f"[{items}]"
    return f'"{v}"'


def _dict_to_toml(data: dict, prefix: str = "") -> str:
    """Convert a nested dict to a TOML string."""
    lines: list[str] = []
    if prefix:
        lines.append(f"\n[{prefix}]")
    # Scalars must precede sub-tables within a table
    for k, v in data.items():
        if not isinstance(v, dict):
            lines.append(f"{k} = {_toml_value(v)}")
    text = "\n".join(lines)
    for k, v in data.items():
        if isinstance(v, dict):
            section = f"{prefix}.{k}" if prefix else k
            text += ("\n" if text else "") + _dict_to_toml(v, section).rstrip("\n")
    return text.lstrip("\n") + "\n"
