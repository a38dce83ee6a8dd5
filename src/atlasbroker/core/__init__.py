"""Core modules for the broker - centralized error definitions."""

from atlasbroker.core.errors import (
    BrokerError,
    CatalogBuildError,
    ContextMergeError,
    CorruptInstanceState,
    CredentialConfigError,
    CredentialLookupError,
    DocumentDecodeError,
    ExitCode,
    InstanceBusy,
    InstanceConflict,
    InstanceNotFound,
    MissingCredential,
    MissingProjectDefinition,
    PlanNotFound,
    RemoteReconcileError,
    ResolutionTimeout,
    StateStoreError,
    TemplateExecutionError,
    TemplateInvalid,
    TemplateMissing,
    format_error_message,
    main_with_error_handling,
)

__all__ = [
    "ExitCode",
    "BrokerError",
    # Catalog
    "CatalogBuildError",
    "PlanNotFound",
    "TemplateInvalid",
    "TemplateMissing",
    # Rendering
    "TemplateExecutionError",
    "DocumentDecodeError",
    "ContextMergeError",
    "MissingProjectDefinition",
    # Instance state
    "CorruptInstanceState",
    "InstanceNotFound",
    "StateStoreError",
    "InstanceBusy",
    "InstanceConflict",
    # Credentials
    "MissingCredential",
    "CredentialLookupError",
    "CredentialConfigError",
    # Remote
    "RemoteReconcileError",
    "ResolutionTimeout",
    # Helpers
    "main_with_error_handling",
    "format_error_message",
]
