"""
Shared fixtures for comfyent tests.

Every fixture that touches SQLite uses a file in a fresh temporary
directory, so tests never share state.
"""

import os
import tempfile

import pytest

from comfyent.client import Client
from comfyent.config import StoreSettings

SEED_USERS = [
    {"name": "Alice", "age": 30, "email": "alice@example.com"},
    {"name": "Bob", "age": 32, "email": "bob@example.com"},
    {"name": "Charlie", "age": 35, "email": "charlie@example.com"},
]


@pytest.fixture
def data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db_path(data_dir):
    """Path of a database file that does not exist yet."""
    return os.path.join(data_dir, "ent.db")


@pytest.fixture
def settings(db_path):
    """Store settings for a temporary database file."""
    return StoreSettings(path=db_path)


@pytest.fixture
def client(settings):
    """Ready client over an empty database."""
    c = Client.open(settings)
    yield c
    c.close()


@pytest.fixture
def seeded(client):
    """Client holding Alice (30), Bob (32) and Charlie (35)."""
    client.user.create_bulk(SEED_USERS)
    return client
