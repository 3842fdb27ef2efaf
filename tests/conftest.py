"""Pytest configuration and fixtures."""

import os

import pytest

from compliance_copilot.boot.load_settings import AppConfigLoader
from compliance_copilot.domain.documents import DocumentStore
from compliance_copilot.domain.session import SessionContext
from compliance_copilot.orchestration.conversation import ConversationEngine
from tests.fakes.fake_gateway import FakeGateway

TEST_KEY = "test-gemini-key"


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["GOOGLE_API_KEY"] = TEST_KEY
    os.environ.pop("GEMINI_API_KEY", None)


@pytest.fixture(autouse=True)
def fresh_settings():
    """Each test starts with an unloaded settings singleton."""
    AppConfigLoader.reset()
    yield
    AppConfigLoader.reset()


@pytest.fixture
def store():
    docs = DocumentStore()
    docs.add("gdpr.txt", "Article 32 requires encryption at rest.")
    return docs


@pytest.fixture
def session():
    return SessionContext(credential=TEST_KEY, model="gemini-2.0-flash")


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def engine(store, session, gateway):
    return ConversationEngine(store, session, gateway)
