"""Shared fixtures for focussync tests."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path

import pytest

from focussync.client.state import LocalStore

ENDPOINT = "http://test/exec"
SECRET = "s3cret"


@pytest.fixture
def store(tmp_path: Path) -> Iterator[LocalStore]:
    """Create an empty local store."""
    local_store = LocalStore(tmp_path / "state.db")
    yield local_store
    local_store.close()


@pytest.fixture
def configured_store(store: LocalStore) -> LocalStore:
    """Local store with remote credentials set."""
    store.update_settings(remote_endpoint_url=ENDPOINT, remote_secret=SECRET)
    return store
