"""
Pytest fixtures for Absurd Room tests.
"""

import random

import pytest
from fastapi.testclient import TestClient

from database import Settings
from core.room_manager import RoomManager
from core.sql_store import create_store
from main import create_app


@pytest.fixture
def settings(tmp_path) -> Settings:
    """In-memory database, identity files under tmp_path."""
    return Settings(database_url="sqlite://", identity_dir=str(tmp_path / "identity"))


@pytest.fixture
def store(settings):
    """A fresh SQL-backed room store per test."""
    store = create_store(settings)
    yield store
    store.close()


@pytest.fixture
def rng() -> random.Random:
    return random.Random(1234)


@pytest.fixture
def room(store, settings, rng):
    """A room created by host device "host-1"."""
    return RoomManager.create_room(store, "Quizmaster", "host-1", settings, rng)


@pytest.fixture
def fixed_deck(monkeypatch):
    """
    Room code 4821 and prompts P1, P2, P3... in order.
    """
    prompts = iter(f"P{i}" for i in range(1, 100))
    monkeypatch.setattr("core.room_manager.generate_room_code", lambda rng: "4821")
    monkeypatch.setattr("core.room_manager.pick_prompt", lambda rng: next(prompts))


@pytest.fixture
def client(store):
    """TestClient bound to the test store."""
    with TestClient(create_app(store)) as client:
        yield client
