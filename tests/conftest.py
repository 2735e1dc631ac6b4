"""
Shared test fixtures for the NPC Forge test suite.

Provides:
- FakeGenerationClient: deterministic generation client (no API key needed)
- Database fixtures: in-memory SQLite, fresh tables per test
- Users, campaigns and bearer-token helpers
- An API TestClient wired to the fixtures
"""

import json
import os
import uuid
from collections import deque
from typing import Any, Dict, List, Optional

# Set test environment BEFORE any app imports
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["GROQ_API_KEY"] = "test-key"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["NPC_CLEANUP_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from app.api.deps import get_db, get_generation_client
from app.core.database import Base, SessionLocal, engine
from app.core.security import create_access_token
from app.main import app
from app.models import Campaign, User, UserRole
from app.services.groq_llm import GenerationClient, GenerationResult


# ---------------------------------------------------------------------------
# FakeGenerationClient - deterministic stub
# ---------------------------------------------------------------------------

ELDA = {
    "name": "Elda",
    "alternativeNames": ["Eldie", "Mother Elda"],
    "race": "Human",
    "class": "Commoner",
    "background": "Guild Artisan",
    "occupation": "Spice merchant",
    "location": "Lower market, Waterdeep",
    "roleInStory": "Sends the party after a stolen shipment",
    "personalityTraits": ["Shrewd", "Warm"],
    "ideals": "Fair trade",
    "bonds": "Her late husband's shop",
    "flaws": "Cannot resist a bargain",
    "appearance": "Grey braid, saffron-stained fingers",
    "mannerisms": "Taps the counter when thinking",
}

ELDA_STATS = {
    "abilityScores": {
        "strength": 9, "dexterity": 11, "constitution": 12,
        "intelligence": 14, "wisdom": 15, "charisma": 16,
    },
    "armorClass": 10,
    "hitPoints": 9,
    "speed": "30 ft.",
    "skills": [{"name": "Persuasion", "modifier": 5}],
    "languages": ["Common", "Halfling"],
    "equipment": ["Ledger", "Dagger"],
}


class FakeGenerationClient(GenerationClient):
    """Generation client returning canned results from a queue.

    With nothing queued it answers with ELDA (plus stats when requested).
    Queue an exception instance to make the next call raise it.
    """

    def __init__(self, structured_output: bool = True):
        self.structured_output = structured_output
        self._queue: deque = deque()
        self.calls: List[Dict[str, Any]] = []

    def queue_data(self, data: Dict[str, Any]):
        self._queue.append(GenerationResult(text=json.dumps(data), data=data, model="fake"))

    def queue_text(self, text: str):
        self._queue.append(GenerationResult(text=text, model="fake"))

    def queue_error(self, error: Exception):
        self._queue.append(error)

    async def generate(self, prompt: str, include_stats: bool, temperature: float) -> GenerationResult:
        self.calls.append({"prompt": prompt, "include_stats": include_stats, "temperature": temperature})
        if self._queue:
            item = self._queue.popleft()
            if isinstance(item, Exception):
                raise item
            return item
        data = dict(ELDA, stats=ELDA_STATS) if include_stats else dict(ELDA)
        return GenerationResult(text=json.dumps(data), data=data, model="fake")


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest.fixture
def db():
    """Fresh tables for every test."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


def make_user(db, username: str, role: str = UserRole.USER) -> User:
    user = User(
        id=f"usr_{uuid.uuid4().hex[:12]}",
        username=username,
        email=f"{username}@example.com",
        role=role,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture
def alice(db) -> User:
    return make_user(db, "alice")


@pytest.fixture
def bob(db) -> User:
    return make_user(db, "bob")


@pytest.fixture
def admin_user(db) -> User:
    return make_user(db, "admin", role=UserRole.ADMIN)


@pytest.fixture
def campaign(db, alice) -> Campaign:
    c = Campaign(id=f"cmp_{uuid.uuid4().hex[:12]}", name="Curse of the Spice Road", dungeon_master_id=alice.id)
    db.add(c)
    db.commit()
    db.refresh(c)
    return c


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


# ---------------------------------------------------------------------------
# Generation client / API
# ---------------------------------------------------------------------------

@pytest.fixture
def fake_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def client(db, fake_client):
    """API client sharing the test session and fake generation client."""
    def _get_db():
        yield db

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_generation_client] = lambda: fake_client
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def api_url():
    def _url(path: str = "") -> str:
        return f"/api/v1/npc-generator{path}"
    return _url


def generate_body(**overrides) -> Dict[str, Any]:
    body: Dict[str, Any] = {"role": "merchant", "storyFit": "quest giver"}
    body.update(overrides)
    return body


def first(items: List[Dict[str, Any]], **match) -> Optional[Dict[str, Any]]:
    for item in items:
        if all(item.get(k) == v for k, v in match.items()):
            return item
    return None
