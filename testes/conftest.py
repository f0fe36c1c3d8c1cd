"""Pytest fixtures for testing"""

import pytest
from fastapi.testclient import TestClient

from fakes import InMemoryLedgerStore
from tesouraria.main import app
from tesouraria.services.ledger_store import get_ledger_store


@pytest.fixture
def store() -> InMemoryLedgerStore:
    store = InMemoryLedgerStore()
    store.add_account("acc-1", "Alfa Participações", bank="Itaú", branch="0445", number="99887-1")
    store.add_account("acc-2", "Beta Imóveis", bank="Bradesco", branch="1203", number="55421-0",
                      account_type="Poupança")
    return store


@pytest.fixture
def client(store: InMemoryLedgerStore):
    """FastAPI test client backed by the in-memory store"""
    app.dependency_overrides[get_ledger_store] = lambda: store
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
