"""Shared test fixtures for MindTrack tests."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Allow running tests without `pip install -e .` by making `src/` importable.
_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_SRC_DIR = _PROJECT_ROOT / "src"
if str(_SRC_DIR) not in sys.path:
    sys.path.insert(0, str(_SRC_DIR))


# ---------------------------------------------------------------------------
# Test hermeticity
# ---------------------------------------------------------------------------

@pytest.fixture(autouse=True)
def _force_hermetic_test_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ENCRYPTION_KEY", "")
    monkeypatch.setenv("CATALOG_DIR", "")
    monkeypatch.setenv("LOCAL_TIMEZONE", "")
    monkeypatch.setenv("MOOD_SCALE_MIN", "1")
    monkeypatch.setenv("MOOD_SCALE_MAX", "5")
    monkeypatch.setenv("REMINDER_SWEEP_ENABLED", "false")


# ---------------------------------------------------------------------------
# Catalog fixtures
# ---------------------------------------------------------------------------

@pytest.fixture(scope="session")
def catalog():
    """The packaged assessment catalog (PHQ9, GAD7, CESD, OASIS)."""
    from mindtrack.domains.wellbeing.domain_logic.catalog import load_default_catalog

    return load_default_catalog()


# ---------------------------------------------------------------------------
# In-memory storage fixtures
# ---------------------------------------------------------------------------

@pytest.fixture
def wellbeing_db():
    """Create an in-memory WellbeingDatabase for testing."""
    from mindtrack.core.storage.database import WellbeingDatabase

    db = WellbeingDatabase(":memory:")
    db.initialize()
    yield db
    db.close()


@pytest.fixture
def field_encryptor():
    """Create a FieldEncryptor with a test key."""
    from cryptography.fernet import Fernet

    from mindtrack.core.storage.encryption import FieldEncryptor

    return FieldEncryptor(Fernet.generate_key().decode())


@pytest.fixture
def wellbeing_repository(wellbeing_db, field_encryptor):
    """Create a WellbeingRepository backed by in-memory SQLite."""
    from mindtrack.core.storage.repository import WellbeingRepository

    return WellbeingRepository(wellbeing_db, field_encryptor)


class RecordingNotifier:
    """Notifier double that records deliveries and can be told to fail."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.sent: list[tuple[str, str, str]] = []

    @property
    def channel(self) -> str:
        return "test"

    def notify(self, schedule_id: str, assessment_type_code: str, assessment_name: str) -> None:
        self.sent.append((schedule_id, assessment_type_code, assessment_name))
        if self.fail:
            raise RuntimeError("delivery failed")


@pytest.fixture
def recording_notifier() -> RecordingNotifier:
    return RecordingNotifier()
