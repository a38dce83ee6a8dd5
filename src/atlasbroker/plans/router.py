from __future__ import annotations

import structlog

from atlasbroker.core.errors import MissingCredential
from atlasbroker.credentials.store import CredentialStore
from atlasbroker.plans.models import APIKey, Plan

logger = structlog.get_logger()


class CredentialRouter:
    """Selects the API key a plan is provisioned with.

    Precedence:
    1. an explicit ``apiKey`` in the plan, whose organization becomes the
       project's organization
    2. the key registered for ``project.orgId``
    """

    def __init__(self, credentials: CredentialStore) -> None:
        self.credentials = credentials

    def route(self, plan: Plan) -> tuple[Plan, APIKey]:
        """Return the plan (with its organization pinned) and the key to use.

        Raises:
            MissingCredential: neither an API key nor an organization ID is set
            CredentialLookupError: no key registered for the organization
        """
        project = plan.project

        if plan.api_key is not None:
            key = plan.api_key
            org_id = key.org_id or (project.org_id if project else None)
            if not org_id:
                raise MissingCredential(
                    "explicit API key carries no organization ID and the project has none"
                )
            key = key.model_copy(update={"org_id": org_id})
            if project is not None:
                project = project.model_copy(update={"org_id": org_id})
            plan = plan.model_copy(update={"api_key": key, "project": project})
            logger.debug("credentials_routed", source="plan", org_id=org_id)
            return plan, key

        if project is not None and project.org_id:
            key = self.credentials.by_org(project.org_id)
            logger.debug("credentials_routed", source="org", org_id=project.org_id)
            return plan, key

        raise MissingCredential("template must contain either APIKey or Project.OrgID")
