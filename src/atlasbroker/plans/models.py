"""
Plan document models.

A Plan is the fully resolved provisioning specification for one service
instance. Field aliases follow the camelCase keys used by plan templates and
by the Atlas admin API, so the same models decode rendered templates,
persisted instance records and live project definitions.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

REDACTED = "********"


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _OpenDocument(_Document):
    """Document that keeps attributes it does not model explicitly."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")


class APIKey(_Document):
    """Public/private key pair identifying a tenant's credentials."""

    public_key: str
    private_key: str
    org_id: str | None = None

    def redacted(self) -> APIKey:
        return self.model_copy(update={"private_key": REDACTED})


class Project(_OpenDocument):
    id: str | None = None
    name: str | None = None
    org_id: str | None = None


class ProviderSettings(_OpenDocument):
    provider_name: str | None = None
    instance_size_name: str | None = None
    region_name: str | None = None


class Cluster(_OpenDocument):
    name: str | None = None
    provider_settings: ProviderSettings | None = None


class Role(_Document):
    role_name: str
    database_name: str | None = None
    collection_name: str | None = None


class DatabaseUser(_OpenDocument):
    username: str
    password: str | None = None
    database_name: str | None = None
    group_id: str | None = None
    roles: list[Role] = Field(default_factory=list)


class IPWhitelistEntry(_OpenDocument):
    ip_address: str | None = None
    cidr_block: str | None = None
    comment: str | None = None
    group_id: str | None = None


class Plan(_Document):
    """Fully resolved provisioning specification."""

    name: str | None = None
    description: str | None = None
    free: bool | None = None
    api_key: APIKey | None = None
    project: Project | None = None
    cluster: Cluster | None = None
    database_users: list[DatabaseUser] = Field(default_factory=list)
    ip_whitelists: list[IPWhitelistEntry] = Field(default_factory=list)

    @classmethod
    def from_document(cls, document: dict[str, Any]) -> Plan:
        return cls.model_validate(document)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the camelCase document form used by templates and state."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def safe_copy(self) -> Plan:
        """Return a copy with the private key and user passwords redacted."""
        users = [
            user.model_copy(update={"password": REDACTED}) if user.password else user
            for user in self.database_users
        ]
        api_key = self.api_key.redacted() if self.api_key else None
        return self.model_copy(update={"api_key": api_key, "database_users": users})
