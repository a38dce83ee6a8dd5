"""
Error taxonomy for the plan resolution engine.

Every failure the engine produces is request scoped: it is returned to the
OSB layer, which maps it onto a protocol error response. The only process
fatal condition is a catalog that fails to build at startup.

Exit Codes (CLI):
- 0: Success
- 10: Configuration error (catalog, templates, credentials setup)
- 11: Provider error (remote API, state store)
- 12: Validation error (rendered document, context overlay, stored state)
- 13: Not found (plan, instance)
- 127: Unknown/internal error
"""

from __future__ import annotations

import functools
import sys
import traceback
from enum import IntEnum
from typing import Any, Callable, TypeVar

import structlog

logger = structlog.get_logger()


class ExitCode(IntEnum):
    """Standardized exit codes for CLI commands."""

    SUCCESS = 0
    CONFIG_ERROR = 10
    PROVIDER_ERROR = 11
    VALIDATION_ERROR = 12
    NOT_FOUND = 13
    UNKNOWN_ERROR = 127


class BrokerError(Exception):
    """Base exception for broker errors with exit code support."""

    exit_code: ExitCode = ExitCode.UNKNOWN_ERROR
    show_traceback: bool = False

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    @property
    def kind(self) -> str:
        return type(self).__name__


# Catalog


class CatalogBuildError(BrokerError):
    """Raised when the plan catalog cannot be built at startup."""

    exit_code = ExitCode.CONFIG_ERROR


class PlanNotFound(BrokerError):
    """Raised when a plan ID is absent from the catalog."""

    exit_code = ExitCode.NOT_FOUND


class TemplateInvalid(BrokerError):
    """Raised when a catalog entry carries no usable template."""

    exit_code = ExitCode.CONFIG_ERROR


TemplateMissing = TemplateInvalid


# Rendering


class TemplateExecutionError(BrokerError):
    """Raised when placeholder substitution or template logic fails."""

    exit_code = ExitCode.CONFIG_ERROR


class DocumentDecodeError(BrokerError):
    """Raised when rendered text is not a well-formed plan document."""

    exit_code = ExitCode.VALIDATION_ERROR


class ContextMergeError(BrokerError):
    """Raised when the request context cannot be overlaid onto a plan."""

    exit_code = ExitCode.VALIDATION_ERROR


class MissingProjectDefinition(BrokerError):
    """Raised when a resolved plan has no project."""

    exit_code = ExitCode.VALIDATION_ERROR


# Instance state


class CorruptInstanceState(BrokerError):
    """Raised when a persisted instance record cannot be decoded."""

    exit_code = ExitCode.VALIDATION_ERROR


class InstanceNotFound(BrokerError):
    """Raised when an existing instance was expected but none is stored."""

    exit_code = ExitCode.NOT_FOUND


class StateStoreError(BrokerError):
    """Raised when the instance state backend fails."""

    exit_code = ExitCode.PROVIDER_ERROR


class InstanceBusy(StateStoreError):
    """Raised when another writer holds the instance lock."""


class InstanceConflict(StateStoreError):
    """Raised when a new instance is committed over an existing record."""

    exit_code = ExitCode.VALIDATION_ERROR


# Credentials


class MissingCredential(BrokerError):
    """Raised when a plan has neither an API key nor an organization ID."""

    exit_code = ExitCode.CONFIG_ERROR


class CredentialLookupError(BrokerError):
    """Raised when no API key is registered for an organization."""

    exit_code = ExitCode.CONFIG_ERROR


class CredentialConfigError(BrokerError):
    """Raised when the credential source cannot be loaded."""

    exit_code = ExitCode.CONFIG_ERROR


# Remote


class RemoteReconcileError(BrokerError):
    """Raised when the remote project lookup fails for a reason other than not found."""

    exit_code = ExitCode.PROVIDER_ERROR


class ResolutionTimeout(BrokerError):
    """Raised when plan resolution exceeds its deadline."""

    exit_code = ExitCode.PROVIDER_ERROR


# Type variable for decorated functions
F = TypeVar("F", bound=Callable[..., int])


def main_with_error_handling(
    *,
    show_traceback: bool = False,
    log_errors: bool = True,
) -> Callable[[F], F]:
    """
    Decorator for CLI commands that provides unified error handling.

    Catches exceptions and converts them to appropriate exit codes with
    consistent error reporting.

    Exit codes:
        - BrokerError subclasses: Uses the error's exit_code
        - KeyboardInterrupt: Returns 130 (standard for SIGINT)
        - Other exceptions: Returns 127 (unknown error)
    """

    def decorator(func: F) -> F:
        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> int:
            try:
                return func(*args, **kwargs)
            except BrokerError as e:
                if log_errors:
                    logger.error(
                        "command_error",
                        error_type=e.kind,
                        message=e.message,
                        exit_code=e.exit_code,
                        **e.details,
                    )
                if e.show_traceback or show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return e.exit_code
            except KeyboardInterrupt:
                if log_errors:
                    logger.info("command_interrupted")
                return 130  # Standard exit code for SIGINT
            except Exception as e:
                if log_errors:
                    logger.error(
                        "unexpected_error",
                        error_type=type(e).__name__,
                        message=str(e),
                        exit_code=ExitCode.UNKNOWN_ERROR,
                    )
                if show_traceback:
                    traceback.print_exc(file=sys.stderr)
                return ExitCode.UNKNOWN_ERROR

        return wrapper  # type: ignore[return-value]

    return decorator


def format_error_message(error: BrokerError) -> str:
    """Format an error message for display to users."""
    msg = error.message
    if error.details:
        detail_str = ", ".join(f"{k}={v}" for k, v in error.details.items())
        msg = f"{msg} ({detail_str})"
    return msg
