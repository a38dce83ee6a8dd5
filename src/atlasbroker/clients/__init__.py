from atlasbroker.clients.atlas import AtlasClient, ProjectNotFound, dashboard_url
from atlasbroker.clients.base import PermanentHTTPError, RetryableHTTPError

__all__ = [
    "AtlasClient",
    "ProjectNotFound",
    "dashboard_url",
    "PermanentHTTPError",
    "RetryableHTTPError",
]
