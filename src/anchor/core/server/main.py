"""Anchor server entry point — ``python -m anchor.core.server.main`` or ``anchor-care-log``.

Configuration is checked before anything is built: every problem that would
stop the server is reported at once, and settings that work but are risky
for a care log (a bearer token over plain HTTP, autosave slower than its own
debounce) are logged as warnings.
"""

from __future__ import annotations

import logging
from ipaddress import ip_address
from urllib.parse import urlsplit

from anchor.core.config.settings import Settings, get_settings
from anchor.core.server.app import create_app

logger = logging.getLogger(__name__)


class StartupConfigError(RuntimeError):
    """The configured settings cannot start a safe server."""

    def __init__(self, problems: list[str]) -> None:
        self.problems = problems
        super().__init__("Cannot start the care log server:\n- " + "\n- ".join(problems))


def _is_loopback_host(host: str) -> bool:
    host = host.strip("[]")
    if host == "localhost":
        return True
    try:
        return ip_address(host).is_loopback
    except ValueError:
        return False


def startup_problems(settings: Settings) -> list[str]:
    """Settings that must be fixed before the server may start."""
    problems = []
    if not settings.anchor_allow_insecure_bind and not _is_loopback_host(settings.anchor_host):
        problems.append(
            f"ANCHOR_HOST={settings.anchor_host} is not a loopback address and the server has "
            "no auth layer. Set ANCHOR_ALLOW_INSECURE_BIND=true to override (unsafe)."
        )
    if settings.repository_backend == "local" and not settings.encryption_key:
        problems.append("REPOSITORY_BACKEND=local requires ENCRYPTION_KEY.")
    if settings.repository_backend == "http" and not urlsplit(settings.anchor_api_url).hostname:
        problems.append(f"ANCHOR_API_URL={settings.anchor_api_url!r} has no host.")
    return problems


def startup_warnings(settings: Settings) -> list[str]:
    warnings = []
    if settings.repository_backend == "http":
        api = urlsplit(settings.anchor_api_url)
        if not settings.anchor_api_token:
            warnings.append("ANCHOR_API_TOKEN is empty; the care log API will reject requests.")
        elif api.scheme == "http" and not _is_loopback_host(api.hostname or ""):
            warnings.append(f"The API token is sent in clear text to {api.hostname}.")
    if not settings.care_recipient_id:
        warnings.append("CARE_RECIPIENT_ID is empty; drafts can be read but not saved.")
    if settings.autosave_interval_seconds < settings.autosave_debounce_seconds:
        warnings.append("AUTOSAVE_INTERVAL_SECONDS is shorter than the debounce window.")
    return warnings


def run() -> None:
    """Check the configuration, then serve the care log over Streamable HTTP.

    Raises:
        StartupConfigError: If any of ``startup_problems`` applies.
    """
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.anchor_log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    problems = startup_problems(settings)
    if problems:
        raise StartupConfigError(problems)
    for warning in startup_warnings(settings):
        logger.warning(warning)

    mcp = create_app()
    logger.info(
        "Serving care log for recipient %s on %s:%d (backend=%s, autosave every %.0fs)",
        settings.care_recipient_id or "<unset>",
        settings.anchor_host,
        settings.anchor_port,
        settings.repository_backend,
        settings.autosave_interval_seconds,
    )
    mcp.run(
        transport="streamable-http",
        host=settings.anchor_host,
        port=settings.anchor_port,
    )


if __name__ == "__main__":
    run()
