"""
Pytest configuration and shared fixtures for the compliance intake tests.
"""
import pytest
from hypothesis import settings, Verbosity

from compliance_intake.auth import Role
from compliance_intake.processing import InMemoryQueueRepository
from compliance_intake.upload import InMemoryFile, InMemoryObjectStore
from tests.strategies import PDF, make_assignment

# Configure Hypothesis settings for all property-based tests
settings.register_profile(
    "default",
    max_examples=100,
    deadline=5000,
    verbosity=Verbosity.normal,
)

settings.register_profile(
    "ci",
    max_examples=200,
    deadline=10000,
    verbosity=Verbosity.quiet,
)

settings.register_profile(
    "debug",
    max_examples=10,
    deadline=None,
    verbosity=Verbosity.verbose,
)

settings.load_profile("default")


@pytest.fixture
def queue_repository():
    """Provide a fresh in-memory queue repository for each test."""
    return InMemoryQueueRepository()


@pytest.fixture
def object_store():
    return InMemoryObjectStore()


@pytest.fixture
def uploader_assignments():
    return [make_assignment(Role.LAB_TECH)]


@pytest.fixture
def read_only_assignments():
    return [make_assignment(Role.READ_ONLY)]


@pytest.fixture
def pdf_file():
    return InMemoryFile("AL-NPDES-permit.pdf", b"%PDF-1.4 permit body", PDF)
