"""Pre-flight validation of a monitor configuration.

Validation is pure: it never touches the network or spawns processes, so a
misconfigured monitor fails fast with a message the user can act on.
"""

from page_monitor.config import LoadState, MonitorConfiguration, WaitOptions
from page_monitor.utils.url_utils import has_http_scheme, is_valid_url

MAX_ADDITIONAL_WAIT_S = 10.0

_LOAD_STATES = frozenset(state.value for state in LoadState)


def validate_config(config: MonitorConfiguration) -> str | None:
    """Return the first configuration problem, or ``None`` when valid.

    Options that need server mode are rejected before the URL and selector
    are looked at, so a direct-mode monitor asking for JavaScript always
    reports the mode problem.
    """
    if not config.use_server:
        problem = _validate_direct_mode(config)
        if problem:
            return problem

    url = config.url.strip()
    if not url:
        return "Please enter a URL"
    if not has_http_scheme(url):
        return "URL must start with http:// or https://"
    if not is_valid_url(url):
        return "Invalid URL format"

    if not config.selector.strip():
        return "Please enter a CSS selector"

    if config.use_server:
        return _validate_server_mode(config)
    return None


def _validate_direct_mode(config: MonitorConfiguration) -> str | None:
    if config.use_javascript:
        return "JavaScript rendering requires server mode"
    if config.fetch_all_matches:
        return "Fetching all matches requires server mode"
    if config.wait_options.enabled:
        return "Waiting for dynamic content requires server mode"
    return None


def _validate_server_mode(config: MonitorConfiguration) -> str | None:
    server_url = config.server_url.strip()
    if not server_url:
        return "Please enter a server URL"
    if not has_http_scheme(server_url):
        return "Server URL must start with http:// or https://"
    if not is_valid_url(server_url):
        return "Invalid server URL format"

    if config.wait_options.enabled:
        if not config.use_javascript:
            return "Invalid wait options: waiting for dynamic content needs JavaScript rendering"
        return _validate_wait_options(config.wait_options)
    return None


def _validate_wait_options(options: WaitOptions) -> str | None:
    if options.load_state and options.load_state not in _LOAD_STATES:
        allowed = ", ".join(sorted(_LOAD_STATES))
        return f"Invalid load state '{options.load_state}': must be one of {allowed}"

    if options.wait_for_selector:
        if not options.wait_for_selector.strip():
            return "Invalid wait selector: must not be blank"
        if _looks_numeric(options.wait_for_selector):
            return (
                f"Invalid wait selector '{options.wait_for_selector}': "
                "expected a CSS selector, not a number"
            )

    if not 0 <= options.additional_wait_time <= MAX_ADDITIONAL_WAIT_S:
        return (
            "Invalid additional wait time: must be between 0 and "
            f"{MAX_ADDITIONAL_WAIT_S:g} seconds"
        )

    if not (options.load_state or options.wait_for_selector or options.additional_wait_time > 0):
        return "Invalid wait options: set a load state, a wait selector or an additional wait time"
    return None


def _looks_numeric(value: str) -> bool:
    try:
        float(value.strip())
    except ValueError:
        return False
    return True
