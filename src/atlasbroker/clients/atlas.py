from __future__ import annotations

from typing import Any
from urllib.parse import quote, urlsplit, urlunsplit

import httpx

from atlasbroker.clients.base import BaseHTTPClient, PermanentHTTPError
from atlasbroker.plans.models import APIKey

DEFAULT_ATLAS_URL = "https://cloud.mongodb.com/api/atlas/v1.0"


class ProjectNotFound(Exception):
    """The control plane has no project with the requested name."""

    def __init__(self, name: str) -> None:
        super().__init__(f"project {name!r} not found")
        self.name = name


class AtlasClient(BaseHTTPClient):
    """Atlas admin API client authenticated with an organization API key."""

    def __init__(
        self,
        key: APIKey,
        base_url: str = DEFAULT_ATLAS_URL,
        *,
        user_agent: str | None = None,
        timeout: float = 30.0,
        max_retries: int = 3,
        backoff_factor: float = 2.0,
    ) -> None:
        # circuit scoped to this key and base URL
        super().__init__(
            base_url,
            auth=httpx.DigestAuth(key.public_key, key.private_key),
            user_agent=user_agent,
            timeout=timeout,
            max_retries=max_retries,
            backoff_factor=backoff_factor,
            circuit_name=f"atlas:{key.public_key}@{base_url.rstrip('/')}",
        )
        self.org_id = key.org_id

    async def get_project_by_name(self, name: str) -> dict[str, Any]:
        """Fetch a project (group) by name.

        Raises:
            ProjectNotFound: no project with that name is visible to the key
        """
        try:
            return await self.get(f"/groups/byName/{quote(name, safe='')}")
        except PermanentHTTPError as exc:
            if exc.status_code == 404:
                raise ProjectNotFound(name) from exc
            raise


def dashboard_url(base_url: str, group_id: str, cluster_name: str) -> str:
    """Link to a cluster's page in the Atlas UI."""
    parts = urlsplit(base_url)
    return urlunsplit((parts.scheme, parts.netloc, f"/v2/{group_id}", "", "")) + (
        f"#clusters/detail/{cluster_name}"
    )
