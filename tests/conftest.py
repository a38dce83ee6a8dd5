"""Root test configuration."""

import logging
from pathlib import Path

import pytest
import structlog

from atlasbroker.credentials import Credentials, CredentialStore
from atlasbroker.plans.catalog import PlanCatalog, ServiceDefinition
from atlasbroker.plans.context import Context

FIXTURES = Path(__file__).parent / "fixtures"
TEMPLATE_DIR = FIXTURES / "templates"

SERVICE = ServiceDefinition(id="svc-test", name="mongodb-atlas-template")


def pytest_configure(config):
    """Configure structlog for tests to suppress debug/info output."""
    logging.basicConfig(level=logging.WARNING, force=True)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.processors.add_log_level,
            structlog.processors.format_exc_info,
            structlog.dev.ConsoleRenderer(),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )


@pytest.fixture
def template_dir() -> Path:
    return TEMPLATE_DIR


@pytest.fixture
def catalog() -> PlanCatalog:
    return PlanCatalog.from_directory(TEMPLATE_DIR, service=SERVICE)


@pytest.fixture
def credentials() -> Credentials:
    return Credentials.from_document(
        {
            "broker": {"username": "broker", "password": "hunter2"},
            "orgs": {"org1": {"publicKey": "org-pub", "privateKey": "org-priv"}},
            "projects": {"p1": {"publicKey": "pub", "privateKey": "priv"}},
        }
    )


@pytest.fixture
def credential_store(credentials: Credentials) -> CredentialStore:
    return CredentialStore(credentials)


@pytest.fixture
def scenario_context() -> Context:
    return Context.build(project={"id": "p1", "name": "demo", "orgId": "org1"})
