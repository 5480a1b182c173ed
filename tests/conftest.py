import sys
from pathlib import Path

import pytest

# Add project root and this directory to path
sys.path.insert(0, str(Path(__file__).parent.parent))
sys.path.insert(0, str(Path(__file__).parent))

from fakes import FakeLLM
from sharplog.config import SharpLogConfig
from sharplog.core.models import Target, UserProfile
from sharplog.persistence.encryption import ConversationEncryptor
from sharplog.persistence.store import WorkLogStore

# Low PBKDF2 cost keeps the suite fast; the format is unchanged
TEST_ITERATIONS = 1_000


@pytest.fixture
def fake_llm():
    return FakeLLM()


@pytest.fixture
def config(tmp_path):
    config = SharpLogConfig()
    config.storage.data_dir = tmp_path / "data"
    config.storage.encryption_secret = "test-secret"
    config.conversation.reset_delay_seconds = 0
    return config


@pytest.fixture
def store(tmp_path):
    return WorkLogStore(tmp_path / "worklog.db")


@pytest.fixture
def encryptor():
    return ConversationEncryptor.for_user("test-secret", "alice", iterations=TEST_ITERATIONS)


@pytest.fixture
def profile():
    return UserProfile(user_id="alice", industry="technology", employment_status="professional")


@pytest.fixture
def targets(store):
    """Two active targets for alice, one for bob, one inactive for alice."""
    features = store.add_target(Target(
        user_id="alice", name="Ship 10 features", type="kpi", target_value=10, unit="features",
    ))
    reviews = store.add_target(Target(
        user_id="alice", name="Review 50 PRs", type="goal", target_value=50, unit="PRs",
    ))
    bobs = store.add_target(Target(user_id="bob", name="Close 5 deals", type="sales_target", target_value=5))
    retired = store.add_target(Target(user_id="alice", name="Old goal", is_active=False))
    return {"features": features, "reviews": reviews, "bobs": bobs, "retired": retired}
