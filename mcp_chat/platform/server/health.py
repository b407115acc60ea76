"""
Service health state and static service metadata.
"""

import datetime
import os
import platform
import socket
import threading
import time
from typing import Any

from mcp_chat.platform.constants import SERVICE_NAME, SERVICE_VERSION

__all__ = ["HealthCheck", "MetadataManager", "metadata"]


class HealthCheck:
    """Thread-safe health check state.

    Disabled while the service drains in-flight chat runs on shutdown, so
    load balancers stop routing new conversations to it.
    """

    _health_check_enabled = threading.Event()

    @staticmethod
    def enable() -> None:
        HealthCheck._health_check_enabled.set()

    @staticmethod
    def disable() -> None:
        HealthCheck._health_check_enabled.clear()

    @staticmethod
    def status() -> bool:
        return HealthCheck._health_check_enabled.is_set()


class MetadataManager:
    """
    Collects container and build metadata once at import time. Add further
    static entries to ``metadata`` if needed.
    """

    # keys to read from the environment
    ENV_INFO_KEYS = [
        "BUILD_DATE",
        "BUILD_URL",
        "GIT_COMMIT",
        "GIT_COMMIT_DATE",
        "IMAGE_NAME",
        "SERVICE_ID",
        "PYTHON_VERSION",
    ]

    def __init__(self) -> None:
        self._started_at = datetime.datetime.now(tz=datetime.UTC).isoformat()
        self._started_ts = time.monotonic()

        metadata: dict[str, Any] = {key.lower(): os.environ.get(key) for key in self.ENV_INFO_KEYS}
        metadata["service_name"] = os.environ.get("SERVICE_NAME") or SERVICE_NAME
        metadata["build_version"] = os.environ.get("BUILD_VERSION") or SERVICE_VERSION
        metadata["hostname"] = socket.gethostname()
        metadata["os_version"] = platform.platform()
        self.metadata = metadata

    def info(self) -> dict[str, Any]:
        """
        Return metadata about the container and some basic stats
        """
        return {
            **self.metadata,
            "started": self._started_at,
            "uptime_seconds": round(time.monotonic() - self._started_ts, 3),
        }


metadata = MetadataManager()
