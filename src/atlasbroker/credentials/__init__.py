from atlasbroker.credentials.loader import (
    credential_store_from_settings,
    load_credentials,
    load_credentials_file,
)
from atlasbroker.credentials.store import BrokerCredentials, Credentials, CredentialStore

__all__ = [
    "BrokerCredentials",
    "Credentials",
    "CredentialStore",
    "credential_store_from_settings",
    "load_credentials",
    "load_credentials_file",
]
