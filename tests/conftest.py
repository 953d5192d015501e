import asyncio
import json
import os
import tempfile

# Settings are read at import time, so point them somewhere harmless first
_DB_DIR = tempfile.mkdtemp(prefix="access-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["ACCESS_STORE_BACKEND"] = "memory"
os.environ["ACCESS_COMMIT_RATE_LIMIT"] = "1000/minute"
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from app.features.access.catalog import PERMISSIONS_STORAGE_KEY  # noqa: E402
from app.features.access.evaluator import AccessEvaluator  # noqa: E402
from app.features.access.storage import MemoryKeyValueStore  # noqa: E402
from app.features.access.store import ConfigurationStore  # noqa: E402
from app.features.users.dependencies import get_current_user  # noqa: E402
from app.features.users.models import User  # noqa: E402
from app.main import app  # noqa: E402


class FailingKeyValueStore(MemoryKeyValueStore):
    """Memory store whose saves fail for the given keys."""

    def __init__(self, failing_keys, initial=None):
        super().__init__(initial)
        self.failing_keys = set(failing_keys)

    async def save(self, key, value):
        if key in self.failing_keys:
            raise OSError(f"disk full while writing {key}")
        await super().save(key, value)


def run(coro):
    return asyncio.run(coro)


def make_store(backend=None) -> ConfigurationStore:
    store = ConfigurationStore(backend if backend is not None else MemoryKeyValueStore())
    run(store.init())
    return store


@pytest.fixture
def store():
    return make_store()


@pytest.fixture
def evaluator(store):
    return AccessEvaluator(store)


@pytest.fixture
def empty_matrix_store():
    """Store whose persisted matrix grants nothing to anyone."""
    return make_store(MemoryKeyValueStore({PERMISSIONS_STORAGE_KEY: json.dumps({})}))


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def as_role():
    """Authenticate subsequent requests as a user with the given role."""
    def _as_role(role, user_id="01HZZZZZZZZZZZZZZZZZZZZZZZ"):
        user = User(
            id=user_id,
            appwrite_id=f"aw-{user_id}",
            email=f"{user_id.lower()}@school.example.com",
            name=f"{role} user",
            role=role,
            is_active=True,
        )
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    yield _as_role
    app.dependency_overrides.pop(get_current_user, None)
