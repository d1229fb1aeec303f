import pytest
from fastapi.testclient import TestClient

from database import ProfileNotFound, PersistenceFailure, StaleProfile
from main import app, get_store
from schemas import Profile


class InMemoryProfileStore:
    """Profile store double. Writes are staged on a copy and published only when complete."""

    def __init__(self):
        self.rows = {}
        self.rewards = []
        self.fail_after_fields = None
        self.stale_writes = 0
        self.saves = 0

    def get_profile(self, user_id):
        if user_id not in self.rows:
            raise ProfileNotFound(user_id)
        return Profile.model_validate(self.rows[user_id])

    def create_profile(self, profile):
        self.rows.setdefault(profile.user_id, profile.model_dump(mode="json"))
        return self.get_profile(profile.user_id)

    def save_profile(self, user_id, fields, expected_version):
        self.saves += 1
        if user_id not in self.rows:
            raise ProfileNotFound(user_id)
        if self.stale_writes:
            self.stale_writes -= 1
            self.rows[user_id]["version"] += 1
        if self.rows[user_id]["version"] != expected_version:
            raise StaleProfile("version mismatch")
        staged = dict(self.rows[user_id])
        for written, (key, value) in enumerate(fields.items()):
            if self.fail_after_fields is not None and written >= self.fail_after_fields:
                raise PersistenceFailure("connection dropped mid-write")
            staged[key] = value
        staged["version"] += 1
        self.rows[user_id] = staged
        return self.get_profile(user_id)

    def log_reward(self, entry):
        self.rewards.append(entry)
        return str(len(self.rewards))

    def reward_history(self, user_id, limit=50):
        return [r for r in self.rewards if r.user_id == user_id][:limit]


@pytest.fixture
def store():
    return InMemoryProfileStore()


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def player(store):
    return store.create_profile(Profile(user_id="u1", email="hero@example.com"))
