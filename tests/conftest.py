"""
Shared fixtures: in-memory SQLite, a manual clock, blobs under tmp_path.
"""

from datetime import datetime, timedelta, timezone

import jwt
import pytest

from timecapsule.clock import ManualClock
from timecapsule.config import Settings
from timecapsule.services import build_services

SECRET = "test-secret"
START = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


class FixedScorer:
    """Scores text from a lookup table, 0 for anything else."""

    def __init__(self, scores=None):
        self.scores = scores or {}
        self.calls = []

    def score(self, text):
        self.calls.append(text)
        return self.scores.get(text, 0)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url="sqlite://",
        secret_key=SECRET,
        media_root=str(tmp_path / "media"),
        media_base_url="http://testserver",
        max_upload_bytes=1024,
    )


@pytest.fixture
def clock():
    return ManualClock(START)


@pytest.fixture
def scorer():
    return FixedScorer({"I love this": 3, "I hate this": -3, "meh": 0.5})


@pytest.fixture
def services(settings, clock, scorer):
    return build_services(settings, clock=clock, scorer=scorer)


@pytest.fixture
def lifecycle(services):
    return services.lifecycle


@pytest.fixture
def ingestion(services):
    return services.ingestion


@pytest.fixture
def store(services):
    return services.store


@pytest.fixture
def make_capsule(lifecycle):
    def _make(creator="alice", title="T", days=1, **kwargs):
        return lifecycle.create(creator, title, START + timedelta(days=days), **kwargs)
    return _make


def make_token(principal_id, secret=SECRET, **claims):
    payload = {"id": principal_id, "exp": datetime.now(timezone.utc) + timedelta(hours=1)}
    payload.update(claims)
    return jwt.encode(payload, secret, algorithm="HS256")


def auth_header(principal_id):
    return {"Authorization": f"Bearer {make_token(principal_id)}"}
