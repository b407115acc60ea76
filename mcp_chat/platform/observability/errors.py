"""Bugsnag error reporting integration.

Every ERROR-level log record is reported, which covers failed chat runs,
failed background tasks and unhandled request errors.
"""

import logging

import bugsnag
from bugsnag.handlers import BugsnagHandler

from mcp_chat.platform.constants import SERVICE_VERSION
from mcp_chat.platform.settings import BugsnagSettings

logger = logging.getLogger(__name__)


def initialize_bugsnag(settings: BugsnagSettings) -> bool:
    """Configure Bugsnag and attach a reporting handler to the root logger.

    No-op for the "local" release stage and when no API key is configured.

    Returns:
        True if reporting was enabled
    """
    if settings.release_stage == "local" or not settings.api_key:
        logger.info("Bugsnag reporting disabled (release stage %s)", settings.release_stage)
        return False
    bugsnag.configure(
        api_key=settings.api_key,
        release_stage=settings.release_stage,
        app_version=SERVICE_VERSION,
        auto_notify=True,
    )
    handler = BugsnagHandler()
    handler.setLevel(logging.ERROR)
    logging.getLogger().addHandler(handler)
    return True
