from atlasbroker.plans.context import Context
from atlasbroker.plans.models import (
    APIKey,
    Cluster,
    DatabaseUser,
    IPWhitelistEntry,
    Plan,
    Project,
    ProviderSettings,
    Role,
)

__all__ = [
    "APIKey",
    "Cluster",
    "Context",
    "DatabaseUser",
    "IPWhitelistEntry",
    "Plan",
    "Project",
    "ProviderSettings",
    "Role",
]
