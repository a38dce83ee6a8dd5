"""
Tenant credential store.

Credentials are held in immutable snapshots. Readers take the current
snapshot once per request; rotation publishes a whole new snapshot, so a
reader never observes a partially updated table.
"""

from __future__ import annotations

import hmac
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Callable, Mapping

import structlog
from pydantic import ValidationError

from atlasbroker.core.errors import CredentialConfigError, CredentialLookupError
from atlasbroker.plans.models import APIKey

logger = structlog.get_logger()


@dataclass(frozen=True, slots=True)
class BrokerCredentials:
    """Username/password pair the OSB platform uses to call the broker."""

    username: str
    password: str

    def matches(self, username: str, password: str) -> bool:
        user_ok = hmac.compare_digest(self.username.encode(), username.encode())
        pass_ok = hmac.compare_digest(self.password.encode(), password.encode())
        return user_ok and pass_ok


@dataclass(frozen=True)
class Credentials:
    """Read-only credential table."""

    orgs: Mapping[str, APIKey] = field(default_factory=dict)
    projects: Mapping[str, APIKey] = field(default_factory=dict)
    broker: BrokerCredentials | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "orgs", MappingProxyType(dict(self.orgs)))
        object.__setattr__(self, "projects", MappingProxyType(dict(self.projects)))

    @classmethod
    def from_document(cls, document: Mapping[str, Any]) -> Credentials:
        """Build credentials from a loosely typed document.

        Expected shape::

            broker: {username: ..., password: ...}
            orgs: {<org id>: {publicKey: ..., privateKey: ...}}
            projects: {<project id>: {publicKey: ..., privateKey: ..., orgId: ...}}

        Org keys default their ``orgId`` to the key they are registered under.
        """
        if not isinstance(document, Mapping):
            raise CredentialConfigError("credentials document must be a mapping")

        try:
            orgs = {
                str(org_id): APIKey.model_validate({"orgId": str(org_id), **(raw or {})})
                for org_id, raw in (document.get("orgs") or {}).items()
            }
            projects = {
                str(project_id): APIKey.model_validate(raw or {})
                for project_id, raw in (document.get("projects") or {}).items()
            }
        except (ValidationError, TypeError, AttributeError) as exc:
            raise CredentialConfigError(f"invalid API key entry: {exc}") from exc

        broker = None
        raw_broker = document.get("broker")
        if raw_broker:
            try:
                broker = BrokerCredentials(
                    username=str(raw_broker["username"]),
                    password=str(raw_broker["password"]),
                )
            except (KeyError, TypeError) as exc:
                raise CredentialConfigError(
                    "broker credentials need a username and a password"
                ) from exc

        return cls(orgs=orgs, projects=projects, broker=broker)

    def by_org(self, org_id: str) -> APIKey:
        key = self.orgs.get(org_id)
        if key is None:
            raise CredentialLookupError(
                f"no API key registered for organization {org_id!r}",
                {"org_id": org_id},
            )
        return key

    def by_project(self, project_id: str) -> APIKey:
        key = self.projects.get(project_id)
        if key is None:
            raise CredentialLookupError(
                f"no API key registered for project {project_id!r}",
                {"project_id": project_id},
            )
        return key

    def as_context(self) -> dict[str, Any]:
        """Template view of the API keys. Broker credentials are never exposed."""
        return {
            "orgs": {org_id: key.model_dump(by_alias=True) for org_id, key in self.orgs.items()},
            "projects": {
                project_id: key.model_dump(by_alias=True)
                for project_id, key in self.projects.items()
            },
        }


class CredentialStore:
    """Holds the current credential snapshot and swaps it atomically on rotation."""

    def __init__(
        self,
        credentials: Credentials | None = None,
        *,
        loader: Callable[[], Credentials] | None = None,
    ) -> None:
        self._loader = loader
        if credentials is None:
            credentials = loader() if loader is not None else Credentials()
        self._current = credentials

    def snapshot(self) -> Credentials:
        return self._current

    def replace(self, credentials: Credentials) -> None:
        self._current = credentials
        logger.info(
            "credentials_replaced",
            orgs=len(credentials.orgs),
            projects=len(credentials.projects),
        )

    def reload(self) -> Credentials:
        """Re-read the credential source and publish the result."""
        if self._loader is None:
            raise CredentialConfigError("credential store has no loader to reload from")
        credentials = self._loader()
        self.replace(credentials)
        return credentials

    @property
    def broker(self) -> BrokerCredentials | None:
        return self._current.broker

    def by_org(self, org_id: str) -> APIKey:
        return self._current.by_org(org_id)
