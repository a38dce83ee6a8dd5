"""
Credential loading.

Sources, in order:
1. ``ATLAS_BROKER_API_KEYS`` - JSON document in the environment
2. ``ATLAS_BROKER_CREDENTIALS_FILE`` - YAML (or JSON) credentials file
3. Empty credential table
"""

from __future__ import annotations

import json
from pathlib import Path

import structlog
import yaml

from atlasbroker.config.settings import Settings
from atlasbroker.core.errors import CredentialConfigError
from atlasbroker.credentials.store import Credentials, CredentialStore

logger = structlog.get_logger()


def load_credentials_file(path: str | Path) -> Credentials:
    credentials_file = Path(path)
    if not credentials_file.exists():
        raise CredentialConfigError(
            f"credentials file {str(credentials_file)!r} does not exist",
            {"file": str(credentials_file)},
        )

    try:
        with open(credentials_file) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as exc:
        raise CredentialConfigError(
            f"credentials file {str(credentials_file)!r} is not valid YAML",
            {"file": str(credentials_file)},
        ) from exc

    return Credentials.from_document(data)


def load_credentials(settings: Settings) -> Credentials:
    """Load credentials from the configured source."""
    if settings.api_keys:
        try:
            data = json.loads(settings.api_keys)
        except json.JSONDecodeError as exc:
            raise CredentialConfigError("ATLAS_BROKER_API_KEYS is not valid JSON") from exc
        credentials = Credentials.from_document(data)
        source = "env"
    elif settings.credentials_file:
        credentials = load_credentials_file(settings.credentials_file)
        source = "file"
    else:
        logger.warning("no_credentials_configured")
        return Credentials()

    logger.info(
        "credentials_loaded",
        source=source,
        orgs=len(credentials.orgs),
        projects=len(credentials.projects),
        broker_auth=credentials.broker is not None,
    )
    return credentials


def credential_store_from_settings(settings: Settings) -> CredentialStore:
    return CredentialStore(loader=lambda: load_credentials(settings))
